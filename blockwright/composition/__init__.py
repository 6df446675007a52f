"""Ordered block composition and the shared-block policy."""

from .engine import CompositionEngine, Composition, CompositionView
from .policy import SharedBlockPolicy, SharedBlockDecision, EditOutcome

__all__ = [
    "CompositionEngine",
    "Composition",
    "CompositionView",
    "SharedBlockPolicy",
    "SharedBlockDecision",
    "EditOutcome"
]
