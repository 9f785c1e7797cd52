"""Grade prediction: cohort linear regression and risk classification."""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence, List

import numpy as np

from grade_analytics import config
from grade_analytics.errors import InsufficientDataError
from grade_analytics.models import (
    ConfidenceInterval,
    FeatureName,
    FeatureWeight,
    GradeEntry,
    PredictionFactor,
    PredictionModel,
    RiskLevel,
    StudentFeatures,
    StudentGradeData,
    StudentPrediction,
    TrainingSummary,
)
from grade_analytics.numeric import (
    coefficient_of_determination,
    fit_ols,
    least_squares_slope,
    rmse,
)
from grade_analytics.statistics import calculate_statistics

logger = logging.getLogger(__name__)

MIN_STUDENTS = 2
MIN_GRADES_PER_STUDENT = 2
TOP_FACTORS = 3


def extract_features(grades: Sequence[GradeEntry]) -> StudentFeatures:
    """
    Derive the regression features from a chronological grade history.

    Args:
        grades: Non-empty grade entries in submission order

    Returns:
        StudentFeatures record
    """
    percentages = [g.percentage for g in grades]
    stats = calculate_statistics(percentages)
    late = sum(1 for g in grades if g.is_late)

    return StudentFeatures(
        average_grade=stats.mean,
        trend_slope=least_squares_slope(percentages),
        grade_std_dev=stats.standard_deviation,
        late_ratio=late / len(grades),
        assignments_completed=len(grades),
    )


def prediction_confidence(variance: float) -> float:
    """
    Map a grade-history variance to a 0-100 confidence.

    Consistent histories score high; confidence halves when the variance
    reaches CONFIDENCE_VARIANCE_SCALE.
    """
    scale = config.CONFIDENCE_VARIANCE_SCALE
    confidence = 100.0 / (1.0 + max(variance, 0.0) / scale)
    return min(100.0, max(0.0, confidence))


def classify_risk(predicted_grade: float, trend_slope: float) -> RiskLevel:
    """
    Classify risk from the predicted grade and the grade trend.

    Args:
        predicted_grade: Forecast percentage (0-100)
        trend_slope: Percentage points gained per assignment

    Returns:
        RiskLevel
    """
    if predicted_grade < config.HIGH_RISK_GRADE or trend_slope <= config.STEEP_DECLINE_SLOPE:
        return RiskLevel.HIGH
    if predicted_grade < config.MEDIUM_RISK_GRADE or trend_slope <= config.DECLINE_SLOPE:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _validate_cohort(student_data: Sequence[StudentGradeData]) -> None:
    if len(student_data) < MIN_STUDENTS:
        raise InsufficientDataError(
            f"Insufficient data for prediction model: need at least {MIN_STUDENTS} "
            f"students, got {len(student_data)}"
        )
    for student in student_data:
        if len(student.grades) < MIN_GRADES_PER_STUDENT:
            raise InsufficientDataError(
                f"Insufficient data for prediction model: student {student.student_id} "
                f"has {len(student.grades)} grade(s), need at least {MIN_GRADES_PER_STUDENT}"
            )


def _training_timeframe(histories: List[List[GradeEntry]]) -> str:
    dates = [g.submitted_at for history in histories for g in history]
    return f"{min(dates):%Y-%m-%d} - {max(dates):%Y-%m-%d}"


def _clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return min(upper, max(lower, float(value)))


def create_linear_regression_model(
    student_data: Sequence[StudentGradeData],
    model_id: Optional[str] = None
) -> PredictionModel:
    """
    Fit a cohort linear regression and predict each student's next grade.

    Each student contributes one training pair: the features of every grade
    before the most recent one, and the most recent grade as the target.
    The fitted weights are then applied to the features of the full history
    to forecast the next grade.

    Args:
        student_data: Grade histories for one cohort
        model_id: Optional identifier for the fitted model

    Returns:
        PredictionModel with one prediction per student, in input order

    Raises:
        InsufficientDataError: with fewer than 2 students, or a student
            with fewer than 2 grades
    """
    _validate_cohort(student_data)

    trained_at = datetime.now(timezone.utc)
    if model_id is None:
        model_id = f"model_{int(trained_at.timestamp() * 1000)}"

    histories = [student.chronological_grades() for student in student_data]
    training_features = [extract_features(history[:-1]) for history in histories]
    current_features = [extract_features(history) for history in histories]
    targets = np.array([history[-1].percentage for history in histories])

    # Columns constant across the cohort carry no signal
    full_matrix = np.array([f.as_vector() for f in training_features])
    varying = np.ptp(full_matrix, axis=0) > 0
    used = [name for name, keep in zip(FeatureName, varying) if keep]
    if not used:
        used = [FeatureName.AVERAGE_GRADE]

    X_train = np.array([f.as_vector(used) for f in training_features])
    scaler, regression = fit_ols(X_train, targets)
    fitted = regression.predict(scaler.transform(X_train))

    model_rmse = rmse(targets, fitted)
    r2 = coefficient_of_determination(targets, fitted)
    accuracy = _clamp((1.0 - model_rmse / 100.0) * 100.0)
    logger.debug(
        "Fitted %s on %d students with features %s (rmse=%.3f, r2=%.3f)",
        model_id, len(histories), [f.value for f in used], model_rmse, r2
    )

    coefficients = regression.coef_
    max_abs = float(np.max(np.abs(coefficients)))
    weights = [
        FeatureWeight(
            name=name,
            coefficient=float(coef),
            importance=abs(float(coef)) / max_abs if max_abs > 0 else 0.0,
        )
        for name, coef in zip(used, coefficients)
    ]

    X_current = scaler.transform(np.array([f.as_vector(used) for f in current_features]))
    forecasts = regression.predict(X_current)

    predictions = []
    for student, history, features, scaled, forecast in zip(
        student_data, histories, current_features, X_current, forecasts
    ):
        predicted = _clamp(forecast)
        variance = features.grade_std_dev ** 2

        impacts = [
            PredictionFactor(factor=name, impact=float(coef * value), value=raw)
            for name, coef, value, raw in zip(used, coefficients, scaled, features.as_vector(used))
        ]
        impacts.sort(key=lambda f: abs(f.impact), reverse=True)

        predictions.append(StudentPrediction(
            student_id=student.student_id,
            predicted_grade=predicted,
            confidence=prediction_confidence(variance),
            risk_level=classify_risk(predicted, features.trend_slope),
            current_grade=features.average_grade,
            trend_slope=features.trend_slope,
            confidence_interval=ConfidenceInterval(
                lower=_clamp(predicted - 1.96 * model_rmse),
                upper=_clamp(predicted + 1.96 * model_rmse),
            ),
            factors=impacts[:TOP_FACTORS],
        ))

    return PredictionModel(
        model_id=model_id,
        predictions=predictions,
        accuracy=accuracy,
        rmse=model_rmse,
        r2_score=r2,
        features=used,
        coefficients=weights,
        intercept=float(regression.intercept_),
        trained_at=trained_at,
        training_data=TrainingSummary(
            sample_size=len(histories),
            timeframe=_training_timeframe(histories),
        ),
    )
