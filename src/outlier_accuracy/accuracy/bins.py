"""Map a gene's expression and a sample's depth onto reference bins.

Both resolvers return None for values outside every bin instead of raising,
so an unbinnable gene or sample yields missing accuracy statistics rather
than aborting the run.
"""

import math
from typing import Optional

import structlog

from outlier_accuracy.accuracy.models import (
    DEPTH_BIN_STEP,
    DEPTH_CEILING_CUTOFF,
    DEPTH_FLOOR_CUTOFF,
    EXPRESSION_BIN_EDGES,
    MAX_DEPTH_BIN,
    ExpressionBin,
)
from outlier_accuracy.reference.models import READS_PER_MILLION

logger = structlog.get_logger()

EXPRESSION_BINS = [
    ExpressionBin(lower, upper)
    for lower, upper in zip(EXPRESSION_BIN_EDGES[:-1], EXPRESSION_BIN_EDGES[1:])
]


def _is_missing(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def resolve_expression_bin(expression: Optional[float]) -> Optional[ExpressionBin]:
    """Return the half-open bin containing expression, or None.

    Bins are [0,1) [1,3) [3,5) [5,7) [7,10) [10,15); a value on an edge
    belongs to the higher bin. Values below 0, at or above 15, NULL or NaN
    have no bin.
    """
    if _is_missing(expression):
        return None

    for expression_bin in EXPRESSION_BINS:
        if expression_bin.contains(expression):
            return expression_bin

    logger.debug("expression_bin_undefined", expression=expression)
    return None


def resolve_depth_bin(mend_depth: Optional[float]) -> Optional[int]:
    """Map a depth in millions of UMEND reads to its depth bin (0, 4, ..., 44).

    Depths of 42M or more go to 44, depths below 2M go to 0, and everything
    else to the nearest multiple of 4. Ties round half to even (Python's
    round), so 2.0 -> 0, 6.0 -> 8 and 10.0 -> 8.

    Returns:
        Depth bin, or None for NULL, NaN or negative depths
    """
    if _is_missing(mend_depth) or mend_depth < 0:
        logger.debug("depth_bin_undefined", mend_depth=mend_depth)
        return None

    if mend_depth >= DEPTH_CEILING_CUTOFF:
        return MAX_DEPTH_BIN
    if mend_depth < DEPTH_FLOOR_CUTOFF:
        return 0
    return round(mend_depth / DEPTH_BIN_STEP) * DEPTH_BIN_STEP


def mend_depth_millions(umend: Optional[float]) -> Optional[float]:
    """Convert a raw UMEND read count to millions of reads."""
    if _is_missing(umend):
        return None
    return umend / READS_PER_MILLION
