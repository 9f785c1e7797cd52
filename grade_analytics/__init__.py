"""Grade analytics: descriptive statistics, distributions and grade prediction."""

from grade_analytics.errors import (
    GradeAnalyticsError,
    EmptyInputError,
    DimensionMismatchError,
    InsufficientDataError,
)
from grade_analytics.statistics import (
    calculate_statistics,
    create_histogram,
    create_box_plot,
    calculate_correlation,
    t_test,
)
from grade_analytics.prediction import create_linear_regression_model
from grade_analytics.report import build_report, analyze_courses

__all__ = [
    "GradeAnalyticsError",
    "EmptyInputError",
    "DimensionMismatchError",
    "InsufficientDataError",
    "calculate_statistics",
    "create_histogram",
    "create_box_plot",
    "calculate_correlation",
    "t_test",
    "create_linear_regression_model",
    "build_report",
    "analyze_courses",
]
