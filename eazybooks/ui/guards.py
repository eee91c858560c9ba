"""
Guard Presentation

Turns an AccessDecision into exactly one visible outcome:

    loading              -> loading indicator
    allowed              -> children
    denied + fallback    -> redirect
    denied + panel       -> upsell panel

The renderer is injected so the same logic drives Streamlit in
production and a recording fake in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from eazybooks.access.guards import DEFAULT_FALLBACK_PATH, AccessDecision, UpsellPanel


class GuardRenderer(ABC):
    """Presentation primitives a guard needs."""

    @abstractmethod
    def loading_indicator(self) -> None:
        """Show that identity is still being resolved."""
        pass

    @abstractmethod
    def redirect(self, path: str) -> None:
        """Navigate away to `path`."""
        pass

    @abstractmethod
    def upsell_panel(self, panel: UpsellPanel) -> None:
        """Show the upgrade panel in place of the gated content."""
        pass


def render_guard(
    decision: AccessDecision,
    children: Callable[[], Any],
    renderer: GuardRenderer,
) -> Optional[Any]:
    """
    Render `decision`. Returns whatever `children()` returns when allowed.

    A denied decision with neither a fallback path nor a panel redirects
    to the dashboard rather than rendering nothing.
    """
    if decision.is_loading:
        renderer.loading_indicator()
        return None

    if decision.is_allowed:
        return children()

    if decision.panel is not None:
        renderer.upsell_panel(decision.panel)
    else:
        renderer.redirect(decision.fallback_path or DEFAULT_FALLBACK_PATH)
    return None
