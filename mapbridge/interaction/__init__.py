"""Interaction state machines over raw provider callbacks.

- view_state_tracker.py: ViewStateTracker + GestureStateMachine (pan/zoom gestures)
- click_disambiguator.py: ClickDisambiguator (click vs double-click, cursor, hover icons)
"""

from mapbridge.interaction.click_disambiguator import ClickDisambiguator
from mapbridge.interaction.view_state_tracker import GestureStateMachine, ViewStateTracker

__all__ = [
    "ClickDisambiguator",
    "GestureStateMachine",
    "ViewStateTracker",
]
