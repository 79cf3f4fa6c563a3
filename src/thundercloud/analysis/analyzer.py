"""Thundercloud likelihood scoring.

Each convective parameter is mapped to a sub-score in [0, 1] by a
piecewise-linear curve through calibrated thresholds (clamped outside
them). The total score is the weighted sum of the sub-scores.

    Parameter              Score 0        Score 0.5     Score 1
    ---------------------  -------------  ------------  -------------
    CAPE (J/kg)            <= 500         1000          >= 2500
    Lifted index           >= 0           -3            <= -6
    |CIN| (J/kg)           >= 100         50            <= 25
    Temperature (C)        <= 20          25            >= 30

The cloud sub-score uses the larger of mid and high cloud cover and only
counts toward the total when the weighting preset gives it a weight.

Risk bands are fixed (low below 0.3, high from 0.6) and do not move with
the likelihood threshold.
"""

import logging
import math
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Union

import numpy as np

from thundercloud.cache.models import AtmosphericSample

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6
LOW_RISK_BELOW = 0.3
HIGH_RISK_FROM = 0.6


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of each sub-score in the total. Must sum to 1."""

    cape: float
    lifted_index: float
    cin: float
    temperature: float
    cloud: float = 0.0

    def __post_init__(self):
        values = [getattr(self, f.name) for f in fields(self)]
        if any(v < 0 for v in values):
            raise ValueError(f"Weights must be non-negative: {self}")
        total = math.fsum(values)
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Weights must sum to 1.0, got {total}")


WEIGHT_PRESETS = {
    "reference": ScoringWeights(cape=0.5, lifted_index=0.35, cin=0.05, temperature=0.10),
    "historical": ScoringWeights(cape=0.5, lifted_index=0.3, cin=0.1, temperature=0.1),
    "cloud": ScoringWeights(cape=0.4, lifted_index=0.3, cin=0.05, temperature=0.1, cloud=0.15),
}


def get_weights(weights: Union[str, ScoringWeights] = "reference") -> ScoringWeights:
    """Resolve a preset name (or pass through a ScoringWeights)."""
    if isinstance(weights, ScoringWeights):
        return weights
    try:
        return WEIGHT_PRESETS[weights]
    except KeyError:
        raise ValueError(
            f"Unknown weights preset: {weights}. Must be one of {sorted(WEIGHT_PRESETS)}"
        ) from None


@dataclass(frozen=True)
class Thresholds:
    """Breakpoints of the sub-score curves, ascending in x."""

    cape: tuple = (500.0, 1000.0, 2500.0)
    lifted_index: tuple = (-6.0, -3.0, 0.0)
    cin: tuple = (25.0, 50.0, 100.0)
    temperature: tuple = (20.0, 25.0, 30.0)
    cloud: tuple = (0.0, 15.0, 30.0, 50.0, 70.0)
    cloud_scores: tuple = (0.0, 0.3, 0.6, 0.8, 1.0)


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class AnalysisResult:
    """Scores for one atmospheric sample. All scores lie in [0, 1]."""

    cape_score: float
    li_score: float
    cin_score: float
    temp_score: float
    cloud_score: float
    total_score: float
    risk_level: RiskLevel
    is_thunder_cloud_likely: bool
    confidence: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        return data


def _curve(value: float, xp: tuple, fp: tuple) -> float:
    return float(np.interp(value, xp, fp))


class ThunderCloudAnalyzer:
    """Score atmospheric samples for thundercloud likelihood.

    ``analyze`` is pure and never raises for a finite sample.

    Example:
        >>> analyzer = ThunderCloudAnalyzer()
        >>> result = analyzer.analyze(AtmosphericSample(cape=2500, lifted_index=-6,
        ...                                             convective_inhibition=25, temperature=30))
        >>> result.total_score, result.is_thunder_cloud_likely
        (1.0, True)
    """

    def __init__(
        self,
        weights: Union[str, ScoringWeights] = "reference",
        threshold: float = DEFAULT_THRESHOLD,
        thresholds: Thresholds = Thresholds(),
    ):
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"threshold must be in (0, 1], got {threshold}")
        self.weights = get_weights(weights)
        self.threshold = threshold
        self.thresholds = thresholds

    # Sub-scores

    def cape_score(self, cape: float) -> float:
        return _curve(cape, self.thresholds.cape, (0.0, 0.5, 1.0))

    def li_score(self, lifted_index: float) -> float:
        return _curve(lifted_index, self.thresholds.lifted_index, (1.0, 0.5, 0.0))

    def cin_score(self, cin: float) -> float:
        # Providers disagree on the sign of CIN; only its magnitude matters
        return _curve(abs(cin), self.thresholds.cin, (1.0, 0.5, 0.0))

    def temp_score(self, temperature: float) -> float:
        return _curve(temperature, self.thresholds.temperature, (0.0, 0.5, 1.0))

    def cloud_score(self, mid: float, high: float) -> float:
        return _curve(max(mid, high), self.thresholds.cloud, self.thresholds.cloud_scores)

    # Aggregates

    def risk_level(self, total: float) -> RiskLevel:
        if total < LOW_RISK_BELOW:
            return RiskLevel.LOW
        if total < HIGH_RISK_FROM:
            return RiskLevel.MODERATE
        return RiskLevel.HIGH

    def confidence(self, total: float) -> float:
        """Distance from the decision threshold, scaled to the span on that side."""
        if total >= self.threshold:
            span = 1.0 - self.threshold
            distance = total - self.threshold
        else:
            span = self.threshold
            distance = self.threshold - total
        if span <= 0:
            return 1.0
        return min(1.0, max(0.0, distance / span))

    def analyze(self, sample: AtmosphericSample) -> AnalysisResult:
        """Score one sample."""
        cape = self.cape_score(sample.cape)
        li = self.li_score(sample.lifted_index)
        cin = self.cin_score(sample.convective_inhibition)
        temp = self.temp_score(sample.temperature)
        cloud = self.cloud_score(sample.cloud_cover_mid, sample.cloud_cover_high)

        w = self.weights
        total = math.fsum(
            [
                w.cape * cape,
                w.lifted_index * li,
                w.cin * cin,
                w.temperature * temp,
                w.cloud * cloud,
            ]
        )
        total = min(1.0, max(0.0, total))

        return AnalysisResult(
            cape_score=cape,
            li_score=li,
            cin_score=cin,
            temp_score=temp,
            cloud_score=cloud,
            total_score=total,
            risk_level=self.risk_level(total),
            is_thunder_cloud_likely=total >= self.threshold,
            confidence=self.confidence(total),
        )
