"""Shared fixtures for grade analytics tests."""

from datetime import datetime, timedelta

import pytest

from grade_analytics.models import GradeEntry, StudentGradeData


def build_student(student_id, grades, course_id='course1', late=None, max_grade=100.0,
                  start=datetime(2024, 1, 15), names=None):
    """Student whose grades are submitted a week apart, in list order."""
    late = late or [False] * len(grades)
    entries = [
        GradeEntry(
            assignment_id=f"assign{i + 1}",
            assignment_name=names[i] if names else f"Assignment {i + 1}",
            grade=grade,
            max_grade=max_grade,
            submitted_at=start + timedelta(days=7 * i),
            is_late=is_late,
        )
        for i, (grade, is_late) in enumerate(zip(grades, late))
    ]
    return StudentGradeData(
        student_id=student_id,
        student_name=f"Student {student_id}",
        course_id=course_id,
        enrollment_date=datetime(2024, 1, 1),
        grades=entries,
    )


@pytest.fixture
def make_student():
    return build_student


@pytest.fixture
def mock_student_data():
    """Two students with three graded assignments each."""
    names = ['Quiz 1', 'Quiz 2', 'Midterm']
    return [
        build_student('student1', [85, 90, 88], names=names),
        build_student('student2', [75, 80, 82], late=[True, False, False], names=names),
    ]
