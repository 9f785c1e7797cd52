"""Data models for the grade analytics engine."""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FrozenModel(BaseModel):
    """Immutable, JSON-serializable value object."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())


# ── Input records ────────────────────────────────────────────────────

class GradeEntry(FrozenModel):
    """A single graded submission."""
    assignment_id: str
    assignment_name: str
    grade: float = Field(ge=0)
    max_grade: float = Field(gt=0)
    submitted_at: datetime
    is_late: bool = False
    category: Optional[str] = None

    @model_validator(mode='after')
    def check_grade_within_max(self):
        if self.grade > self.max_grade:
            raise ValueError(f"grade {self.grade} exceeds max_grade {self.max_grade}")
        return self

    @property
    def percentage(self) -> float:
        return self.grade / self.max_grade * 100.0


class StudentGradeData(FrozenModel):
    """All grades of one student in one course."""
    student_id: str
    student_name: str
    course_id: str
    enrollment_date: Optional[datetime] = None
    grades: List[GradeEntry] = Field(default_factory=list)

    def chronological_grades(self) -> List[GradeEntry]:
        """Grades ordered by submission time; ties keep insertion order."""
        return sorted(self.grades, key=lambda g: g.submitted_at)


# ── Descriptive statistics ───────────────────────────────────────────

class Quartiles(FrozenModel):
    q1: float
    q2: float
    q3: float
    iqr: float


class Percentiles(FrozenModel):
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float


class GradeStatistics(FrozenModel):
    """Descriptive statistics for a sample of grades."""
    mean: float
    median: float
    mode: List[float]
    standard_deviation: float
    variance: float
    min: float
    max: float
    range: float
    quartiles: Quartiles
    percentiles: Percentiles


class HistogramBin(FrozenModel):
    """Data for a single histogram bin."""
    range_label: str
    min: float
    max: float
    count: int
    percentage: float
    student_ids: List[str] = Field(default_factory=list)


class HistogramData(FrozenModel):
    """Equal-width histogram of a sample."""
    bins: List[HistogramBin]
    bin_width: float
    total_count: int
    statistics: GradeStatistics


class Outlier(FrozenModel):
    value: float
    student_id: Optional[str] = None
    student_name: Optional[str] = None


class BoxPlotData(FrozenModel):
    """Box plot with whiskers clipped to the data."""
    min: float
    q1: float
    median: float
    q3: float
    max: float
    lower_fence: float
    upper_fence: float
    outliers: List[Outlier]
    statistics: GradeStatistics


class TTestResult(FrozenModel):
    """Welch's t-test comparing two grade samples."""
    t_statistic: float
    p_value: float
    significant: bool
    effect: str


# ── Prediction ───────────────────────────────────────────────────────

class FeatureName(str, Enum):
    """Regression features, in vector order."""
    AVERAGE_GRADE = 'average_grade'
    TREND_SLOPE = 'trend_slope'
    GRADE_STD_DEV = 'grade_std_dev'
    LATE_RATIO = 'late_ratio'
    ASSIGNMENTS_COMPLETED = 'assignments_completed'


class RiskLevel(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class StudentFeatures(FrozenModel):
    """Feature record derived from one student's grade history."""
    average_grade: float
    trend_slope: float
    grade_std_dev: float
    late_ratio: float
    assignments_completed: int

    def as_vector(self, names: Optional[List[FeatureName]] = None) -> List[float]:
        names = list(FeatureName) if names is None else names
        return [float(getattr(self, name.value)) for name in names]


class FeatureWeight(FrozenModel):
    name: FeatureName
    coefficient: float
    importance: float


class PredictionFactor(FrozenModel):
    """Contribution of one feature to a single prediction."""
    factor: FeatureName
    impact: float
    value: float


class ConfidenceInterval(FrozenModel):
    lower: float
    upper: float


class StudentPrediction(FrozenModel):
    """Forecast and risk classification for one student."""
    student_id: str
    predicted_grade: float = Field(ge=0, le=100)
    confidence: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    current_grade: float
    trend_slope: float
    confidence_interval: ConfidenceInterval
    factors: List[PredictionFactor] = Field(default_factory=list)


class TrainingSummary(FrozenModel):
    sample_size: int
    timeframe: str


class PredictionModel(FrozenModel):
    """A fitted cohort regression and its per-student predictions."""
    model_id: str
    type: str = 'linear_regression'
    predictions: List[StudentPrediction]
    accuracy: float
    rmse: float
    r2_score: float
    features: List[FeatureName]
    coefficients: List[FeatureWeight]
    intercept: float
    trained_at: datetime
    training_data: TrainingSummary


# ── Report ───────────────────────────────────────────────────────────

class AssignmentTrendPoint(FrozenModel):
    """Statistics for one assignment across the cohort."""
    date: str
    assignment_id: str
    assignment_name: str
    category: Optional[str] = None
    statistics: GradeStatistics
    distribution: List[HistogramBin]
    total_submissions: int
    late_submissions: int


class AssignmentCorrelation(FrozenModel):
    with_assignment_id: str
    with_assignment_name: str
    correlation_coefficient: float
    strength: str
    relationship: str
    sample_size: int


class AssignmentCorrelations(FrozenModel):
    assignment_id: str
    assignment_name: str
    correlations: List[AssignmentCorrelation]


class DistributionSection(FrozenModel):
    histogram: HistogramData
    box_plot: BoxPlotData
    trends: List[AssignmentTrendPoint]


class ReportSummary(FrozenModel):
    total_students: int
    total_assignments: int
    overall_statistics: GradeStatistics
    key_insights: List[str]
    recommendations: List[str]


class GradeAnalyticsReport(FrozenModel):
    """Complete analytics report for one course."""
    id: str
    course_id: str
    course_name: str
    generated_at: datetime
    summary: ReportSummary
    distribution: DistributionSection
    correlations: Optional[List[AssignmentCorrelations]] = None
    predictions: Optional[PredictionModel] = None
    notices: List[str] = Field(default_factory=list)


# ── API envelopes ────────────────────────────────────────────────────

class ValuesRequest(BaseModel):
    """Request carrying a sample of grades."""
    values: List[float]
    student_ids: Optional[List[str]] = None
    student_names: Optional[List[str]] = None
    bin_count: Optional[int] = None


class CorrelationRequest(BaseModel):
    x: List[float]
    y: List[float]
    method: str = 'pearson'


class CorrelationResponse(BaseModel):
    correlation: float
    strength: str
    method: str


class TTestRequest(BaseModel):
    sample1: List[float]
    sample2: List[float]


class StudentsRequest(BaseModel):
    """Request carrying a cohort of student grade histories."""
    students: List[StudentGradeData]
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    bin_count: Optional[int] = None
    include_correlations: bool = True
    include_predictions: bool = True


class UploadResponse(BaseModel):
    """Response from file upload endpoint."""
    success: bool
    message: str
    reports: Dict[str, GradeAnalyticsReport]
