"""
Runner module for orchestrating the build map pipeline.
"""

from .pipeline_runner import BuildMapRunner, RunnerConfig, RunMetrics

__all__ = ["BuildMapRunner", "RunnerConfig", "RunMetrics"]
