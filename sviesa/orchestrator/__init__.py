"""
Sviesa Orchestrator Module
==========================

Orchestration layer for the answer pipeline.

Components:
    - AnswerPipeline (sviesa.orchestrator.pipeline): classify, cache lookup,
      retrieval, generation, persistence
    - BackgroundTaskQueue: observable fire-and-forget persistence
    - setup_logging: console/JSON/file logging

The pipeline module is imported directly; it depends on every other
subpackage, which in turn use the task queue from here.

Usage:
    from sviesa.orchestrator.pipeline import AnswerPipeline

    pipeline = AnswerPipeline.from_settings()
    await pipeline.open()
    result = await pipeline.answer_text("Kas yra Eucharistija?")
"""

from .logging_config import JSONFormatter, TurnFormatter, configure_logging, setup_logging
from .tasks import BackgroundTaskQueue, TaskFailure, TaskStats

__all__ = [
    "BackgroundTaskQueue",
    "TaskFailure",
    "TaskStats",
    "JSONFormatter",
    "TurnFormatter",
    "configure_logging",
    "setup_logging",
]
