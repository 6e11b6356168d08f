"""Pipeline orchestration for content analysis."""

from src.pipeline.orchestrator import ContentPipeline, PipelineOptions
from src.pipeline.progress_tracker import StageTracker

__all__ = [
    "ContentPipeline",
    "PipelineOptions",
    "StageTracker",
]
