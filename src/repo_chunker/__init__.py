"""Repo Chunker package."""

from .config import ChunkBudget, FilterPolicy, PipelineConfig
from .ingest.pipeline import ChunkPipeline

__all__ = ["ChunkBudget", "ChunkPipeline", "FilterPolicy", "PipelineConfig"]
