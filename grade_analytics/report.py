"""Assemble course analytics reports from student grade histories."""

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence, List

from grade_analytics import config
from grade_analytics.errors import InsufficientDataError
from grade_analytics.models import (
    AssignmentCorrelation,
    AssignmentCorrelations,
    AssignmentTrendPoint,
    DistributionSection,
    GradeAnalyticsReport,
    GradeStatistics,
    PredictionModel,
    ReportSummary,
    RiskLevel,
    StudentGradeData,
)
from grade_analytics.prediction import create_linear_regression_model
from grade_analytics.statistics import (
    calculate_correlation,
    calculate_statistics,
    correlation_strength,
    create_box_plot,
    create_histogram,
)

logger = logging.getLogger(__name__)

TREND_BIN_COUNT = 5
MIN_CORRELATION_PAIRS = 3


def build_assignment_trends(students: Sequence[StudentGradeData]) -> List[AssignmentTrendPoint]:
    """
    Per-assignment statistics across the cohort, ordered by earliest submission.

    Args:
        students: Grade histories for one course

    Returns:
        One trend point per assignment
    """
    grouped = defaultdict(list)
    for student in students:
        for entry in student.grades:
            grouped[entry.assignment_id].append(entry)

    ordered = sorted(grouped.values(), key=lambda entries: min(e.submitted_at for e in entries))

    trends = []
    for entries in ordered:
        first = entries[0]
        percentages = [e.percentage for e in entries]
        trends.append(AssignmentTrendPoint(
            date=f"{min(e.submitted_at for e in entries):%Y-%m-%d}",
            assignment_id=first.assignment_id,
            assignment_name=first.assignment_name,
            category=first.category,
            statistics=calculate_statistics(percentages),
            distribution=create_histogram(percentages, TREND_BIN_COUNT).bins,
            total_submissions=len(entries),
            late_submissions=sum(1 for e in entries if e.is_late),
        ))
    return trends


def build_correlation_analysis(students: Sequence[StudentGradeData]) -> List[AssignmentCorrelations]:
    """
    Pairwise Pearson correlation between assignments.

    Only students graded on both assignments contribute; pairs with fewer
    than three shared students are skipped.
    """
    by_student = []
    names = {}
    for student in students:
        grades = {}
        for entry in student.grades:
            grades[entry.assignment_id] = entry.percentage
            names.setdefault(entry.assignment_id, entry.assignment_name)
        by_student.append(grades)

    analysis = []
    for assignment_id, assignment_name in names.items():
        correlations = []
        for other_id, other_name in names.items():
            if other_id == assignment_id:
                continue
            pairs = [
                (grades[assignment_id], grades[other_id])
                for grades in by_student
                if assignment_id in grades and other_id in grades
            ]
            if len(pairs) < MIN_CORRELATION_PAIRS:
                continue

            x, y = zip(*pairs)
            r = calculate_correlation(x, y)
            if r > 0:
                relationship = 'positive'
            elif r < 0:
                relationship = 'negative'
            else:
                relationship = 'none'

            correlations.append(AssignmentCorrelation(
                with_assignment_id=other_id,
                with_assignment_name=other_name,
                correlation_coefficient=r,
                strength=correlation_strength(r),
                relationship=relationship,
                sample_size=len(pairs),
            ))

        analysis.append(AssignmentCorrelations(
            assignment_id=assignment_id,
            assignment_name=assignment_name,
            correlations=correlations,
        ))
    return analysis


def generate_insights(statistics: GradeStatistics, trends: Sequence[AssignmentTrendPoint]) -> List[str]:
    """Plain-language observations about class performance."""
    insights = []

    if statistics.mean >= 85:
        insights.append('Class performance is excellent with high average grades')
    elif statistics.mean >= 75:
        insights.append('Class performance is good with solid average grades')
    elif statistics.mean >= 65:
        insights.append('Class performance is average with room for improvement')
    else:
        insights.append('Class performance is below average and needs attention')

    if statistics.standard_deviation > 15:
        insights.append('High grade variability indicates diverse student performance levels')
    elif statistics.standard_deviation < 5:
        insights.append('Low grade variability shows consistent student performance')

    if len(trends) >= 2:
        mean_change = trends[-1].statistics.mean - trends[0].statistics.mean
        if mean_change > 5:
            insights.append('Grade trends show improvement over time')
        elif mean_change < -5:
            insights.append('Grade trends show decline over time - intervention may be needed')

    return insights


def generate_recommendations(
    statistics: GradeStatistics,
    predictions: Optional[PredictionModel]
) -> List[str]:
    """Suggested actions for the instructor."""
    recommendations = []

    if statistics.mean < 70:
        recommendations.append('Consider reviewing course difficulty and providing additional support')
        recommendations.append('Implement peer tutoring or study groups')

    if statistics.standard_deviation > 15:
        recommendations.append('Provide differentiated instruction to address varying performance levels')
        recommendations.append('Consider additional support for struggling students')

    if predictions is not None:
        high_risk = sum(1 for p in predictions.predictions if p.risk_level == RiskLevel.HIGH)
        if high_risk > 0:
            recommendations.append(
                f"{high_risk} student(s) at high risk - consider early intervention"
            )

    return recommendations


def build_report(
    students: Sequence[StudentGradeData],
    course_id: Optional[str] = None,
    course_name: Optional[str] = None,
    bin_count: Optional[int] = None,
    include_correlations: bool = True,
    include_predictions: bool = True
) -> GradeAnalyticsReport:
    """
    Build the full analytics report for one course.

    A prediction model that cannot be fitted is omitted and explained in
    the report's notices instead of failing the whole report.

    Args:
        students: Grade histories for one course
        course_id: Course identifier (defaults to the students' course)
        course_name: Display name (defaults to the course id)
        bin_count: Histogram bins (defaults to HISTOGRAM_BIN_COUNT)
        include_correlations: Compute assignment correlations
        include_predictions: Fit the prediction model

    Returns:
        GradeAnalyticsReport

    Raises:
        EmptyInputError: if the students have no grades at all
    """
    if course_id is None:
        course_id = students[0].course_id if students else 'unknown'
    if course_name is None:
        course_name = course_id

    all_grades = [entry.percentage for s in students for entry in s.grades]
    grade_student_ids = [s.student_id for s in students for _ in s.grades]
    grade_student_names = [s.student_name for s in students for _ in s.grades]

    overall = calculate_statistics(all_grades)
    histogram = create_histogram(
        all_grades,
        bin_count if bin_count is not None else config.HISTOGRAM_BIN_COUNT,
        grade_student_ids,
    )
    box_plot = create_box_plot(all_grades, grade_student_ids, grade_student_names)
    trends = build_assignment_trends(students)

    correlations = build_correlation_analysis(students) if include_correlations else None

    notices = []
    predictions = None
    if include_predictions:
        try:
            predictions = create_linear_regression_model(students)
        except InsufficientDataError as e:
            logger.warning("Omitting predictions for course %s: %s", course_id, e)
            notices.append(f"Predictions unavailable: {e}")

    generated_at = datetime.now(timezone.utc)
    return GradeAnalyticsReport(
        id=f"report_{course_id}_{int(generated_at.timestamp() * 1000)}",
        course_id=course_id,
        course_name=course_name,
        generated_at=generated_at,
        summary=ReportSummary(
            total_students=len(students),
            total_assignments=len(trends),
            overall_statistics=overall,
            key_insights=generate_insights(overall, trends),
            recommendations=generate_recommendations(overall, predictions),
        ),
        distribution=DistributionSection(
            histogram=histogram,
            box_plot=box_plot,
            trends=trends,
        ),
        correlations=correlations,
        predictions=predictions,
        notices=notices,
    )


def analyze_courses(
    students: Sequence[StudentGradeData],
    max_workers: Optional[int] = None,
    **report_options
) -> Dict[str, GradeAnalyticsReport]:
    """
    Build one report per course, fanning courses out across threads.

    Args:
        students: Grade histories spanning any number of courses
        max_workers: Thread pool size (None lets the executor decide)
        **report_options: Passed through to build_report; course_id and
            course_name come from each course and cannot be overridden

    Returns:
        Reports keyed by course id
    """
    clashing = sorted({'course_id', 'course_name'} & set(report_options))
    if clashing:
        raise TypeError(f"analyze_courses() sets {clashing} per course; do not pass them")

    by_course = defaultdict(list)
    for student in students:
        by_course[student.course_id].append(student)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            course_id: executor.submit(build_report, course_students, course_id=course_id, **report_options)
            for course_id, course_students in by_course.items()
        }
        return {course_id: future.result() for course_id, future in futures.items()}
