"""Signing services."""

from tronsigner.services.factory import build_orchestrator
from tronsigner.services.orchestrator import FailureKind, SigningOrchestrator, SigningOutcome

__all__ = [
    "build_orchestrator",
    "FailureKind",
    "SigningOrchestrator",
    "SigningOutcome",
]
