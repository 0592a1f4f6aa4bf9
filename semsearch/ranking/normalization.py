"""Score normalization for hybrid fusion.

Vector similarities are bounded while lexical rank scores are not, so the
two columns are rescaled onto comparable ranges before they are weighted.
Every function here is pure: the output depends only on the values passed in,
which keeps each query's score distribution self-contained.

Degenerate columns are not errors:
- ``min-max`` maps a constant column (including a single value) to all ``1``
  so a unanimous candidate is not penalized.
- ``z-score`` maps a constant column to all ``0``.
"""

import statistics
from enum import Enum
from typing import List, Sequence, Union


class NormalizationMethod(str, Enum):
    """Supported score normalization methods."""
    NONE = "none"
    MIN_MAX = "min-max"
    Z_SCORE = "z-score"


def min_max_normalize(values: Sequence[float]) -> List[float]:
    """Rescale ``values`` onto ``[0, 1]``.

    Example
    >>> min_max_normalize([10.0, 20.0, 30.0])
    [0.0, 0.5, 1.0]
    >>> min_max_normalize([5.0, 5.0])
    [1.0, 1.0]
    """
    if not values:
        return []

    lo = min(values)
    hi = max(values)
    if hi == lo:
        return [1.0] * len(values)

    span = hi - lo
    return [(v - lo) / span for v in values]


def z_score_normalize(values: Sequence[float]) -> List[float]:
    """Standardize ``values`` using the population standard deviation."""
    if not values:
        return []

    # Constant columns must short-circuit before the mean is taken.
    if max(values) == min(values):
        return [0.0] * len(values)

    mean = statistics.fmean(values)
    std_dev = statistics.pstdev(values, mu=mean)
    if std_dev == 0:
        return [0.0] * len(values)

    return [(v - mean) / std_dev for v in values]


def normalize(
    values: Sequence[float],
    method: Union[NormalizationMethod, str] = NormalizationMethod.MIN_MAX
) -> List[float]:
    """Normalize one score column with ``method``.

    Returns a new list with the same length and order as ``values``.
    Raises ``ValueError`` for an unknown method name.
    """
    method = NormalizationMethod(method)

    if method == NormalizationMethod.MIN_MAX:
        return min_max_normalize(values)
    if method == NormalizationMethod.Z_SCORE:
        return z_score_normalize(values)
    return [float(v) for v in values]
