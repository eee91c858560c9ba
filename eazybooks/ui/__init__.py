"""Presentation of guard decisions."""

from eazybooks.ui.guards import GuardRenderer, render_guard

__all__ = ["GuardRenderer", "render_guard"]
