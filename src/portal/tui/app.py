from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from textual.app import App
from textual.binding import Binding

from portal.utils.preferences import UiState

if TYPE_CHECKING:
    from portal.models.issuer import Issuer
    from portal.services.api_client import ApiClient

_THEMES = {"light": "textual-light", "dark": "textual-dark"}


class PortalApp(App):
    """Portal do Cliente TUI application."""

    CSS_PATH = "app.tcss"
    TITLE = "Portal do Cliente"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("q", "quit", "Sair", priority=True),
    ]

    def __init__(self, client: ApiClient | None = None) -> None:
        super().__init__()
        self._client = client
        self._issuer: Issuer | None = None
        self.ui_state = UiState()

    @property
    def client(self) -> ApiClient:
        """Backend client, built from configuration on first use."""
        if self._client is None:
            from portal.services.api_client import ApiClient

            self._client = ApiClient.from_config()
        return self._client

    @property
    def issuer(self) -> Issuer:
        if self._issuer is None:
            from portal.config import load_issuer
            from portal.models.issuer import Issuer

            self._issuer = Issuer.from_dict(load_issuer())
        return self._issuer

    def on_mount(self) -> None:
        from portal.tui.screens.dashboard import DashboardScreen
        from portal.utils.preferences import load_state

        self.ui_state = load_state()
        self._apply_theme()
        self.push_screen(DashboardScreen())

    def update_preferences(self, reducer: Callable[..., UiState], *args: Any) -> UiState:
        """Apply a preferences reducer, persist the result and refresh the theme."""
        from portal.utils.preferences import save_state

        self.ui_state = reducer(self.ui_state, *args)
        save_state(self.ui_state)
        self._apply_theme()
        return self.ui_state

    def _apply_theme(self) -> None:
        self.theme = _THEMES.get(self.ui_state.theme, "textual-light")
