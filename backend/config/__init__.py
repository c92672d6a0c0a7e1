"""Backend configuration module"""

from .pipeline_config import (
    TIER_WEIGHTS,
    DetectionTier,
    EnrichmentStrategy,
    PipelineConfig,
    load_pipeline_config,
)

__all__ = [
    "PipelineConfig",
    "EnrichmentStrategy",
    "DetectionTier",
    "TIER_WEIGHTS",
    "load_pipeline_config",
]
