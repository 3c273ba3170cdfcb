"""Query orchestration state machine."""

from .orchestrator import QueryOrchestrator

__all__ = ["QueryOrchestrator"]
