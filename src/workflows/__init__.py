"""
Workflows module - News loop orchestration for the game.
"""
from workflows.base import NewsLoop
from workflows.orchestrator import NewsOrchestrator, SystemStatus
from workflows.pipeline_factory import build_orchestrator

__all__ = [
    "NewsLoop",
    "NewsOrchestrator",
    "SystemStatus",
    "build_orchestrator",
]
