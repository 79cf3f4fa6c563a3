"""Thundercloud likelihood scoring."""

from thundercloud.analysis.analyzer import (
    WEIGHT_PRESETS,
    AnalysisResult,
    RiskLevel,
    ScoringWeights,
    ThunderCloudAnalyzer,
    Thresholds,
    get_weights,
)

__all__ = [
    "AnalysisResult",
    "RiskLevel",
    "ScoringWeights",
    "ThunderCloudAnalyzer",
    "Thresholds",
    "WEIGHT_PRESETS",
    "get_weights",
]
