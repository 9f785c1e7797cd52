"""Unit tests for parsers module."""

from io import BytesIO

import pandas as pd
import pytest

from grade_analytics.parsers import (
    is_fraction_column,
    load_grade_sheet,
    normalize_grade_columns,
    normalize_late_flag,
    normalize_percentage,
    records_to_students,
)


@pytest.fixture
def raw_sheet():
    return pd.DataFrame({
        'Student ID': ['001', '001', '002', '002'],
        'student_name': ['John Doe', 'John Doe', 'Jane Smith', 'Jane Smith'],
        'Course Code': ['MATH101'] * 4,
        'Assessment': ['Quiz 1', 'Quiz 2', 'Quiz 1', 'Quiz 2'],
        'Score': [17, 18, 15, 12],
        'Out Of': [20, 20, 20, 20],
        'Submission Date': ['2024-01-15', '2024-01-30', '2024-01-16', '2024-02-01'],
        'Late': ['no', 'no', 'yes', 'yes'],
    })


def test_normalize_grade_columns(raw_sheet):
    df = normalize_grade_columns(raw_sheet)

    for col in ['Student#', 'Student Name', 'Course', 'Assignment', 'Grade', 'Max Grade', 'Submitted At', 'Late']:
        assert col in df.columns
    # Original is not modified
    assert 'Student ID' in raw_sheet.columns


def test_normalize_grade_columns_missing_required():
    df = pd.DataFrame({'Student ID': ['1'], 'Score': [10]})

    with pytest.raises(ValueError, match='missing required column'):
        normalize_grade_columns(df)


def test_records_to_students(raw_sheet):
    students = records_to_students(normalize_grade_columns(raw_sheet))

    assert [s.student_id for s in students] == ['001', '002']
    john = students[0]
    assert john.student_name == 'John Doe'
    assert john.course_id == 'MATH101'
    assert [g.assignment_name for g in john.grades] == ['Quiz 1', 'Quiz 2']
    assert john.grades[0].percentage == pytest.approx(85.0)
    assert students[1].grades[1].is_late == True


def test_records_to_students_percent_grades_and_dropped_rows():
    df = normalize_grade_columns(pd.DataFrame({
        'Student#': ['1', '1', '1'],
        'Student Name': ['Ann', 'Ann', 'Ann'],
        'Assignment': ['HW1', 'HW2', 'HW3'],
        'Grade': [0.88, 0.72, None],
        'Submitted At': ['2024-03-01', '2024-03-08', '2024-03-15'],
    }))
    students = records_to_students(df, default_course_id='bio')

    assert len(students) == 1
    assert students[0].course_id == 'bio'
    # The blank grade is dropped, not read as zero
    assert [g.percentage for g in students[0].grades] == pytest.approx([88.0, 72.0])


def test_normalize_percentage():
    assert normalize_percentage(0.5) == 0.5
    assert normalize_percentage(0.5, fraction=True) == 50.0
    assert normalize_percentage(70.0) == 70.0
    assert normalize_percentage('95%') == 95.0
    assert normalize_percentage(None) is None
    assert normalize_percentage(pd.NA) is None
    assert normalize_percentage('n/a') is None


def test_normalize_late_flag():
    assert normalize_late_flag('Yes') == True
    assert normalize_late_flag('no') == False
    assert normalize_late_flag(1) == True
    assert normalize_late_flag(None) == False
    with pytest.raises(ValueError):
        normalize_late_flag('sometimes')


def test_load_grade_sheet_csv_and_excel(raw_sheet):
    csv_bytes = raw_sheet.to_csv(index=False).encode('utf-8')
    assert list(load_grade_sheet(csv_bytes, 'grades.csv').columns) == list(raw_sheet.columns)

    buffer = BytesIO()
    raw_sheet.to_excel(buffer, index=False, engine='openpyxl')
    excel_df = load_grade_sheet(buffer.getvalue(), 'grades.xlsx')
    assert len(excel_df) == 4

    with pytest.raises(ValueError):
        load_grade_sheet(b'', 'grades.txt')


def _percent_sheet(grades):
    count = len(grades)
    return normalize_grade_columns(pd.DataFrame({
        'Student#': ['1'] * count,
        'Student Name': ['Ann'] * count,
        'Assignment': [f'HW{i + 1}' for i in range(count)],
        'Grade': grades,
        'Submitted At': [f'2024-03-{i + 1:02d}' for i in range(count)],
    }))


def test_records_to_students_low_percentages_are_not_scaled():
    """A score of 1 on a percentage sheet stays 1%, not 100%."""
    students = records_to_students(_percent_sheet([85, 1, 0.5, '72%']))

    assert [g.percentage for g in students[0].grades] == pytest.approx([85.0, 1.0, 0.5, 72.0])


def test_is_fraction_column():
    assert is_fraction_column([0.9, 0.75, None, 1]) == True
    assert is_fraction_column([85, 1]) == False
    assert is_fraction_column(['0.5%', 0.4]) == False
    assert is_fraction_column([None, 'n/a']) == False


def test_records_to_students_drops_grades_above_max():
    df = normalize_grade_columns(pd.DataFrame({
        'Student#': ['1', '1'],
        'Student Name': ['Ann', 'Ann'],
        'Assignment': ['Quiz 1', 'Quiz 2'],
        'Grade': [18, 25],
        'Max Grade': [20, 20],
        'Submitted At': ['2024-01-15', '2024-01-30'],
    }))
    students = records_to_students(df)

    assert [g.assignment_name for g in students[0].grades] == ['Quiz 1']

    over_hundred = records_to_students(_percent_sheet([90, 120]))
    assert [g.percentage for g in over_hundred[0].grades] == pytest.approx([90.0])
