"""Error types raised by the grade analytics engine."""


class GradeAnalyticsError(ValueError):
    """Base class for recoverable analysis errors."""


class EmptyInputError(GradeAnalyticsError):
    """A statistics function received zero samples."""


class DimensionMismatchError(GradeAnalyticsError):
    """Paired input series have different lengths."""


class InsufficientDataError(GradeAnalyticsError):
    """Too few students or grade points to fit a cohort model."""
