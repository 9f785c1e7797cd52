"""Unit tests for report assembly."""

import pytest

from grade_analytics.errors import EmptyInputError
from grade_analytics.report import (
    analyze_courses,
    build_assignment_trends,
    build_correlation_analysis,
    build_report,
    generate_insights,
    generate_recommendations,
)
from grade_analytics.statistics import calculate_statistics


@pytest.fixture
def cohort(make_student):
    return [
        make_student('s1', [90, 92, 95]),
        make_student('s2', [70, 75, 80]),
        make_student('s3', [60, 58, 50], late=[False, True, True]),
        make_student('s4', [85, 84, 88]),
    ]


def test_build_report(cohort):
    report = build_report(cohort, course_name='Algebra I', bin_count=4)

    assert report.course_id == 'course1'
    assert report.course_name == 'Algebra I'
    assert report.summary.total_students == 4
    assert report.summary.total_assignments == 3
    assert report.distribution.histogram.total_count == 12
    assert len(report.distribution.histogram.bins) == 4
    assert report.distribution.box_plot.statistics == report.summary.overall_statistics
    assert report.predictions is not None
    assert len(report.predictions.predictions) == 4
    assert report.notices == []
    assert report.summary.key_insights


def test_build_report_histogram_tracks_students(cohort):
    report = build_report(cohort, bin_count=2)
    ids = [sid for b in report.distribution.histogram.bins for sid in b.student_ids]

    assert sorted(ids) == sorted(['s1', 's2', 's3', 's4'] * 3)


def test_build_report_without_enough_students(make_student):
    """Predictions are omitted with a notice instead of failing the report."""
    report = build_report([make_student('solo', [80, 85, 90])])

    assert report.predictions is None
    assert len(report.notices) == 1
    assert 'Predictions unavailable' in report.notices[0]
    assert report.summary.overall_statistics.mean == pytest.approx(85)


def test_build_report_optional_sections(cohort):
    report = build_report(cohort, include_correlations=False, include_predictions=False)

    assert report.correlations is None
    assert report.predictions is None
    assert report.notices == []


def test_build_report_no_grades():
    with pytest.raises(EmptyInputError):
        build_report([])


def test_build_assignment_trends(cohort):
    trends = build_assignment_trends(cohort)

    assert [t.assignment_id for t in trends] == ['assign1', 'assign2', 'assign3']
    assert trends[0].date == '2024-01-15'
    assert trends[0].total_submissions == 4
    assert trends[1].late_submissions == 1
    assert trends[0].statistics.mean == pytest.approx(76.25)
    assert sum(b.count for b in trends[0].distribution) == 4


def test_build_correlation_analysis(cohort):
    analysis = build_correlation_analysis(cohort)

    assert len(analysis) == 3
    first = analysis[0]
    assert first.assignment_id == 'assign1'
    assert [c.with_assignment_id for c in first.correlations] == ['assign2', 'assign3']
    for correlation in first.correlations:
        assert -1 <= correlation.correlation_coefficient <= 1
        assert correlation.sample_size == 4
        assert correlation.relationship == 'positive'


def test_correlation_skips_small_overlaps(make_student):
    students = [make_student('a', [80, 90]), make_student('b', [70, 60])]
    analysis = build_correlation_analysis(students)

    assert all(entry.correlations == [] for entry in analysis)


def test_generate_insights_and_recommendations():
    strong = calculate_statistics([90, 88, 92, 91])
    weak = calculate_statistics([30, 95, 55, 40, 70])

    assert 'excellent' in generate_insights(strong, [])[0]
    assert any('variability' in i for i in generate_insights(weak, []))
    assert generate_recommendations(strong, None) == []
    assert len(generate_recommendations(weak, None)) == 4


def test_analyze_courses(make_student):
    students = [
        make_student('a', [80, 85], course_id='math'),
        make_student('b', [60, 65], course_id='math'),
        make_student('c', [90, 95], course_id='art'),
    ]
    reports = analyze_courses(students, max_workers=2)

    assert set(reports) == {'math', 'art'}
    assert reports['math'].summary.total_students == 2
    assert reports['math'].predictions is not None
    assert reports['art'].predictions is None


def test_analyze_courses_rejects_course_overrides(make_student):
    students = [make_student('a', [80, 85], course_id='math')]

    with pytest.raises(TypeError, match='course_id'):
        analyze_courses(students, course_id='other')

    reports = analyze_courses(students, include_predictions=False, include_correlations=False)
    assert reports['math'].course_id == 'math'
