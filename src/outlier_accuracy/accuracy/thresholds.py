"""Typed view over the per-cohort outlier threshold JSON.

The threshold JSON is nested as cohort -> {"high": {gene: value},
"low": {gene: value}}. Upstream writers are inconsistent about how a value
is encoded (bare numbers, one-element lists, null, "NA"), so every value is
normalised here to a float or None before it reaches any arithmetic.
"""

import math
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

logger = structlog.get_logger()

MISSING_MARKERS = {"", "NA", "NaN", "nan", "null", "None"}


def coerce_threshold(value: Any) -> Optional[float]:
    """Normalise one raw threshold value to a float, or None if it is missing."""
    if isinstance(value, list):
        if len(value) != 1:
            return None
        value = value[0]

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        if value.strip() in MISSING_MARKERS:
            return None
        try:
            value = float(value)
        except ValueError:
            return None

    if not isinstance(value, (int, float)):
        return None

    value = float(value)
    if math.isnan(value):
        return None
    return value


class CohortThresholds(BaseModel):
    """High and low outlier thresholds of one cohort, keyed by gene."""

    model_config = ConfigDict(extra="ignore")

    high: dict[str, Optional[float]] = Field(default_factory=dict)
    low: dict[str, Optional[float]] = Field(default_factory=dict)

    @field_validator("high", "low", mode="before")
    @classmethod
    def normalise_values(cls, v: Any) -> dict[str, Optional[float]]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("threshold block must be an object keyed by gene")
        return {str(gene): coerce_threshold(value) for gene, value in v.items()}


class ThresholdTable(RootModel[dict[str, CohortThresholds]]):
    """All cohorts' thresholds for one sample."""

    @property
    def cohorts(self) -> list[str]:
        return list(self.root)

    def resolve(self, gene: str, cohort: str, direction: str = "high") -> Optional[float]:
        """Look up the threshold for gene in cohort.

        Returns:
            The threshold, or None when the cohort is absent, the gene is
            absent from the cohort, or the stored value is missing
        """
        cohort_thresholds = self.root.get(cohort)
        if cohort_thresholds is None:
            logger.debug("threshold_cohort_missing", cohort=cohort, gene=gene)
            return None

        table = cohort_thresholds.high if direction == "high" else cohort_thresholds.low
        threshold = table.get(gene)
        if threshold is None:
            logger.debug("threshold_missing", cohort=cohort, gene=gene)
        return threshold
