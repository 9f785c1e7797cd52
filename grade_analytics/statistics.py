"""Descriptive statistics, distributions and correlation for grade samples."""

import math
from collections import Counter
from typing import Optional, Sequence, List

import numpy as np
from scipy import stats as sp_stats

from grade_analytics import config
from grade_analytics.errors import EmptyInputError, DimensionMismatchError, InsufficientDataError
from grade_analytics.models import (
    GradeStatistics,
    Quartiles,
    Percentiles,
    HistogramBin,
    HistogramData,
    Outlier,
    BoxPlotData,
    TTestResult,
)
from grade_analytics.numeric import percentile


def calculate_statistics(values: Sequence[float]) -> GradeStatistics:
    """
    Calculate comprehensive statistics for a sample.

    Variance is the population variance (divides by n): the sample is
    treated as every grade there is.

    Args:
        values: Numeric values, typically percentages

    Returns:
        GradeStatistics snapshot

    Raises:
        EmptyInputError: if values is empty
    """
    if len(values) == 0:
        raise EmptyInputError('Cannot calculate statistics for empty dataset')

    data = np.asarray(values, dtype=float)
    sorted_values = np.sort(data)
    n = len(sorted_values)

    minimum = float(sorted_values[0])
    maximum = float(sorted_values[-1])

    if minimum == maximum:
        # Summation drifts by an ulp on values like 0.1; keep the spread exact
        mean = minimum
        variance = 0.0
    else:
        mean = float(data.mean())
        variance = float(np.mean((data - mean) ** 2))

    mid = n // 2
    if n % 2 == 0:
        median = float((sorted_values[mid - 1] + sorted_values[mid]) / 2)
    else:
        median = float(sorted_values[mid])

    q1 = percentile(sorted_values, 25)
    q3 = percentile(sorted_values, 75)

    return GradeStatistics(
        mean=mean,
        median=median,
        mode=calculate_mode(values),
        standard_deviation=math.sqrt(variance),
        variance=variance,
        min=minimum,
        max=maximum,
        range=maximum - minimum,
        quartiles=Quartiles(q1=q1, q2=median, q3=q3, iqr=q3 - q1),
        percentiles=Percentiles(
            p10=percentile(sorted_values, 10),
            p25=q1,
            p50=median,
            p75=q3,
            p90=percentile(sorted_values, 90),
            p95=percentile(sorted_values, 95),
        ),
    )


def calculate_mode(values: Sequence[float]) -> List[float]:
    """Most frequent values, in first-seen order."""
    frequency = Counter(float(v) for v in values)
    if not frequency:
        return []
    max_freq = max(frequency.values())
    return [value for value, count in frequency.items() if count == max_freq]


def _format_edge(value: float) -> str:
    return f"{round(value, 2):g}"


def create_histogram(
    values: Sequence[float],
    bin_count: Optional[int] = None,
    student_ids: Optional[Sequence[str]] = None
) -> HistogramData:
    """
    Create a histogram with equal-width bins over [min, max].

    The last bin includes its upper bound. When every value is identical a
    single bin of MIN_BIN_WIDTH holds the whole sample.

    Args:
        values: Numeric values
        bin_count: Number of bins (defaults to HISTOGRAM_BIN_COUNT)
        student_ids: Optional ids, same length and order as values

    Returns:
        HistogramData with embedded statistics
    """
    if bin_count is None:
        bin_count = config.HISTOGRAM_BIN_COUNT
    if bin_count < 1:
        raise ValueError(f"bin_count must be at least 1, got {bin_count}")
    if student_ids is not None and len(student_ids) != len(values):
        raise DimensionMismatchError(
            f"Got {len(student_ids)} student ids for {len(values)} values"
        )

    statistics = calculate_statistics(values)
    data = np.asarray(values, dtype=float)
    lo, hi = statistics.min, statistics.max

    if hi == lo:
        bin_count = 1
        bin_width = config.MIN_BIN_WIDTH
        edges = np.array([lo, lo + bin_width])
    else:
        bin_width = (hi - lo) / bin_count
        edges = lo + bin_width * np.arange(bin_count + 1)
        edges[-1] = hi

    # side='right' puts values sitting on an edge into the upper bin
    indices = np.searchsorted(edges, data, side='right') - 1
    indices = np.clip(indices, 0, bin_count - 1)

    total = len(data)
    bins = []
    for i in range(bin_count):
        members = np.flatnonzero(indices == i)
        count = int(len(members))
        bin_ids = [student_ids[j] for j in members] if student_ids is not None else []
        bins.append(HistogramBin(
            range_label=f"{_format_edge(edges[i])}-{_format_edge(edges[i + 1])}",
            min=float(edges[i]),
            max=float(edges[i + 1]),
            count=count,
            percentage=count / total * 100.0,
            student_ids=bin_ids,
        ))

    return HistogramData(
        bins=bins,
        bin_width=float(bin_width),
        total_count=total,
        statistics=statistics,
    )


def create_box_plot(
    values: Sequence[float],
    student_ids: Optional[Sequence[str]] = None,
    student_names: Optional[Sequence[str]] = None
) -> BoxPlotData:
    """
    Create box plot data with IQR-fence outlier detection.

    Whiskers are the most extreme values inside the fence, not the fence
    bounds. Outliers carry the student identity only when it was supplied.

    Args:
        values: Numeric values
        student_ids: Optional ids, same length and order as values
        student_names: Optional names, same length and order as values

    Returns:
        BoxPlotData with embedded statistics
    """
    for label, labels in (('student ids', student_ids), ('student names', student_names)):
        if labels is not None and len(labels) != len(values):
            raise DimensionMismatchError(
                f"Got {len(labels)} {label} for {len(values)} values"
            )

    statistics = calculate_statistics(values)
    quartiles = statistics.quartiles

    fence = config.OUTLIER_FENCE_MULTIPLIER * quartiles.iqr
    lower_fence = quartiles.q1 - fence
    upper_fence = quartiles.q3 + fence

    outliers = []
    inside = []
    for index, value in enumerate(values):
        value = float(value)
        if value < lower_fence or value > upper_fence:
            outliers.append(Outlier(
                value=value,
                student_id=student_ids[index] if student_ids is not None else None,
                student_name=student_names[index] if student_names is not None else None,
            ))
        else:
            inside.append(value)

    # A zero multiplier can fence out every value; whiskers collapse onto the box
    return BoxPlotData(
        min=min(inside) if inside else quartiles.q1,
        q1=quartiles.q1,
        median=quartiles.q2,
        q3=quartiles.q3,
        max=max(inside) if inside else quartiles.q3,
        lower_fence=lower_fence,
        upper_fence=upper_fence,
        outliers=outliers,
        statistics=statistics,
    )


def calculate_correlation(
    x: Sequence[float],
    y: Sequence[float],
    method: str = 'pearson'
) -> float:
    """
    Correlation coefficient between two paired series.

    Args:
        x: First series
        y: Second series, same length as x
        method: 'pearson' or 'spearman' (Pearson over average ranks)

    Returns:
        Coefficient in [-1, 1]; 0.0 when either series has no variance

    Raises:
        DimensionMismatchError: if the series differ in length
        EmptyInputError: if the series are empty
    """
    if len(x) != len(y):
        raise DimensionMismatchError(
            f"Datasets must have the same length ({len(x)} != {len(y)})"
        )
    if len(x) == 0:
        raise EmptyInputError('Cannot correlate empty datasets')

    if method == 'spearman':
        x = sp_stats.rankdata(x)
        y = sp_stats.rankdata(y)
    elif method != 'pearson':
        raise ValueError(f"Unknown correlation method: {method}")

    return _pearson(np.asarray(x, dtype=float), np.asarray(y, dtype=float))


def _pearson(x: np.ndarray, y: np.ndarray) -> float:
    x_diff = x - x.mean()
    y_diff = y - y.mean()
    denominator = math.sqrt(float(np.dot(x_diff, x_diff)) * float(np.dot(y_diff, y_diff)))
    if denominator == 0:
        return 0.0
    r = float(np.dot(x_diff, y_diff)) / denominator
    return max(-1.0, min(1.0, r))


def correlation_strength(correlation: float) -> str:
    """Label the magnitude of a correlation coefficient."""
    magnitude = abs(correlation)
    if magnitude >= 0.7:
        return 'strong'
    if magnitude >= 0.5:
        return 'moderate'
    if magnitude >= 0.3:
        return 'weak'
    return 'none'


def t_test(sample1: Sequence[float], sample2: Sequence[float], alpha: float = 0.05) -> TTestResult:
    """
    Welch's t-test comparing the means of two grade samples.

    Effect size is Cohen's d over the pooled sample standard deviation.
    """
    if len(sample1) < 2 or len(sample2) < 2:
        raise InsufficientDataError('Each sample needs at least 2 values for a t-test')

    a = np.asarray(sample1, dtype=float)
    b = np.asarray(sample2, dtype=float)
    var1 = a.var(ddof=1)
    var2 = b.var(ddof=1)

    if var1 == 0 and var2 == 0:
        if a.mean() != b.mean():
            raise InsufficientDataError('Samples have no variance; t-test is undefined')
        t_statistic, p_value = 0.0, 1.0
    else:
        result = sp_stats.ttest_ind(a, b, equal_var=False)
        t_statistic, p_value = float(result.statistic), float(result.pvalue)

    n1, n2 = len(a), len(b)
    pooled_sd = math.sqrt(((n1 - 1) * var1 + (n2 - 1) * var2) / (n1 + n2 - 2))
    cohens_d = abs(a.mean() - b.mean()) / pooled_sd if pooled_sd > 0 else 0.0

    if cohens_d < 0.2:
        effect = 'small'
    elif cohens_d < 0.8:
        effect = 'medium'
    else:
        effect = 'large'

    return TTestResult(
        t_statistic=t_statistic,
        p_value=p_value,
        significant=p_value < alpha,
        effect=effect,
    )
