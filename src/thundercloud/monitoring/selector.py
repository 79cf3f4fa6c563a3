"""Per-direction aggregation of distance analyses.

Two policies consume the same analyzer:

- ``first_triggered`` (live alerting): walk distances in ascending order and
  stop at the first likely result. Later distances are never pulled from the
  input iterable, so a lazy iterable avoids their fetch entirely.
- ``representative`` (reporting and caching): analyze every distance and keep
  the highest total score, the nearest distance winning ties.

Both expect their input ordered by ascending distance, as produced by
``sample_coordinates``.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from thundercloud.analysis.analyzer import AnalysisResult, ThunderCloudAnalyzer
from thundercloud.cache.models import AtmosphericSample
from thundercloud.utils.geo import Direction, SampleCoordinate

logger = logging.getLogger(__name__)

SampleStream = Iterable[tuple[SampleCoordinate, AtmosphericSample]]


@dataclass(frozen=True)
class DistanceAnalysis:
    """Analysis of the sample at one distance."""

    coordinate: SampleCoordinate
    sample: AtmosphericSample
    result: AnalysisResult

    @property
    def distance_km(self) -> float:
        return self.coordinate.distance_km

    def to_dict(self) -> dict:
        return {
            "distance_km": self.distance_km,
            "coordinates": self.coordinate.point.to_dict(),
            "sample": self.sample.to_dict(),
            "analysis": self.result.to_dict(),
        }


@dataclass
class DirectionalAssessment:
    """Outcome for one user and one direction.

    Attributes:
        direction: Cardinal direction
        selected: Representative distance analysis (None if nothing was analyzed)
        analyses: Every distance analysis computed, in evaluation order
        triggered: Whether any analyzed distance was likely
    """

    direction: Direction
    selected: Optional[DistanceAnalysis]
    analyses: list[DistanceAnalysis] = field(default_factory=list)
    triggered: bool = False

    @property
    def result(self) -> Optional[AnalysisResult]:
        return self.selected.result if self.selected else None

    def to_dict(self) -> dict:
        data = {
            "direction": self.direction.value,
            "triggered": self.triggered,
            "evaluated": [
                {
                    "distance_km": a.distance_km,
                    "total_score": a.result.total_score,
                    "is_thunder_cloud_likely": a.result.is_thunder_cloud_likely,
                }
                for a in self.analyses
            ],
        }
        if self.selected is not None:
            data.update(self.selected.to_dict())
        return data


def _first_max(analyses: list[DistanceAnalysis]) -> Optional[DistanceAnalysis]:
    best = None
    for analysis in analyses:
        if best is None or analysis.result.total_score > best.result.total_score:
            best = analysis
    return best


class DirectionalSelector:
    """Applies the alerting and reporting policies to a direction's samples."""

    def __init__(self, analyzer: ThunderCloudAnalyzer):
        self.analyzer = analyzer

    def _analyze(self, coordinate: SampleCoordinate, sample: AtmosphericSample) -> DistanceAnalysis:
        return DistanceAnalysis(coordinate, sample, self.analyzer.analyze(sample))

    def first_triggered(self, direction, samples: SampleStream) -> DirectionalAssessment:
        """Alerting policy: stop at the first likely distance.

        If nothing triggers, the highest-scoring analyzed distance is selected
        for display.
        """
        direction = Direction.parse(direction)
        analyses = []
        for coordinate, sample in samples:
            analysis = self._analyze(coordinate, sample)
            analyses.append(analysis)
            if analysis.result.is_thunder_cloud_likely:
                logger.debug(
                    f"{direction.value}: triggered at {coordinate.distance_km:g}km "
                    f"(score {analysis.result.total_score:.2f})"
                )
                return DirectionalAssessment(direction, analysis, analyses, triggered=True)

        return DirectionalAssessment(direction, _first_max(analyses), analyses, triggered=False)

    def representative(self, direction, samples: SampleStream) -> DirectionalAssessment:
        """Reporting policy: analyze every distance, keep the first maximum."""
        direction = Direction.parse(direction)
        analyses = [self._analyze(coordinate, sample) for coordinate, sample in samples]
        triggered = any(a.result.is_thunder_cloud_likely for a in analyses)
        return DirectionalAssessment(direction, _first_max(analyses), analyses, triggered=triggered)
