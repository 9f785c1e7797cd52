"""Numeric helpers shared by the statistics and prediction modules."""

from typing import Sequence, Tuple

import numpy as np
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_squared_error, r2_score
from sklearn.preprocessing import StandardScaler


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Percentile of pre-sorted data by linear interpolation between ranks.

    The rank is ``p / 100 * (n - 1)``; fractional ranks interpolate between
    the two neighbouring sorted values.

    Args:
        sorted_values: Non-empty values in ascending order
        p: Percentile in [0, 100]

    Returns:
        Interpolated value
    """
    n = len(sorted_values)
    index = (p / 100.0) * (n - 1)
    lower = int(np.floor(index))
    upper = min(lower + 1, n - 1)
    weight = index - lower

    low_value = float(sorted_values[lower])
    high_value = float(sorted_values[upper])
    if weight == 0 or low_value == high_value:
        return low_value
    return min(high_value, low_value + (high_value - low_value) * weight)


def least_squares_slope(values: Sequence[float]) -> float:
    """Slope of values against their position 1..n; 0 for fewer than two points."""
    n = len(values)
    if n < 2:
        return 0.0

    x = np.arange(1, n + 1, dtype=float)
    y = np.asarray(values, dtype=float)
    x_diff = x - x.mean()
    return float(np.dot(x_diff, y - y.mean()) / np.dot(x_diff, x_diff))


def fit_ols(features: np.ndarray, targets: np.ndarray) -> Tuple[StandardScaler, LinearRegression]:
    """
    Fit ordinary least squares on standardised features.

    Uses the minimum-norm least-squares solution, so cohorts with fewer
    samples than features still fit instead of failing on a singular system.

    Args:
        features: 2-D array, one row per sample
        targets: 1-D array of target values

    Returns:
        Tuple of (fitted scaler, fitted regression)
    """
    scaler = StandardScaler()
    X_scaled = scaler.fit_transform(features)

    model = LinearRegression()
    model.fit(X_scaled, targets)
    return scaler, model


def rmse(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """Root-mean-square error."""
    return float(np.sqrt(mean_squared_error(actual, predicted)))


def coefficient_of_determination(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """R² score; 1.0 when the targets have no variance and are predicted exactly."""
    return float(r2_score(actual, predicted))
