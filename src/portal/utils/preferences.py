"""Local UI preferences: theme, sidebar, dashboard widgets and notifications.

State is an immutable ``UiState``; every reducer returns a new value. Only
``load_state``/``save_state`` touch the disk (``<data dir>/preferences.json``).
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from portal import config as _config

logger = logging.getLogger(__name__)

THEMES = ("light", "dark")
NOTIFICATION_TYPES = ("info", "success", "warning", "error")
MAX_NOTIFICATIONS = 50

DEFAULT_WIDGETS: tuple[tuple[str, bool], ...] = (
    ("stats", True),
    ("recent_invoices", True),
    ("upcoming_guides", True),
    ("overdue_guides", False),
)


@dataclass(frozen=True)
class Notification:
    id: str
    title: str
    message: str = ""
    type: str = "info"
    read: bool = False
    created_at: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> Notification:
        return cls(
            id=str(d["id"]),
            title=d.get("title", ""),
            message=d.get("message", ""),
            type=d.get("type", "info") if d.get("type") in NOTIFICATION_TYPES else "info",
            read=bool(d.get("read", False)),
            created_at=d.get("created_at", ""),
        )


@dataclass(frozen=True)
class UiState:
    theme: str = "light"
    sidebar_open: bool = True
    sidebar_collapsed: bool = False
    widgets: tuple[tuple[str, bool], ...] = DEFAULT_WIDGETS
    notifications: tuple[Notification, ...] = field(default_factory=tuple)

    def widget_visible(self, name: str) -> bool:
        return dict(self.widgets).get(name, False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "theme": self.theme,
            "sidebar_open": self.sidebar_open,
            "sidebar_collapsed": self.sidebar_collapsed,
            "widgets": dict(self.widgets),
            "notifications": [asdict(n) for n in self.notifications],
        }

    @classmethod
    def from_dict(cls, d: dict) -> UiState:
        """Build state from persisted JSON; unknown or missing keys fall back to defaults."""
        saved_widgets = d.get("widgets") or {}
        saved_notifications = d.get("notifications") or []
        if not isinstance(saved_widgets, dict):
            raise ValueError("widgets is not an object")
        if not isinstance(saved_notifications, list):
            raise ValueError("notifications is not a list")
        widgets = dict(DEFAULT_WIDGETS)
        for name, visible in saved_widgets.items():
            widgets[name] = bool(visible)
        theme = d.get("theme", "light")
        return cls(
            theme=theme if theme in THEMES else "light",
            sidebar_open=bool(d.get("sidebar_open", True)),
            sidebar_collapsed=bool(d.get("sidebar_collapsed", False)),
            widgets=tuple(widgets.items()),
            notifications=tuple(
                Notification.from_dict(n)
                for n in saved_notifications
                if isinstance(n, dict) and "id" in n
            ),
        )


# --- Reducers ---


def toggle_theme(state: UiState) -> UiState:
    return replace(state, theme="dark" if state.theme == "light" else "light")


def set_sidebar_open(state: UiState, is_open: bool) -> UiState:
    return replace(state, sidebar_open=is_open)


def toggle_sidebar(state: UiState) -> UiState:
    """Collapse/expand the sidebar (it stays open)."""
    return replace(state, sidebar_collapsed=not state.sidebar_collapsed)


def set_widget_visible(state: UiState, name: str, visible: bool) -> UiState:
    widgets = dict(state.widgets)
    widgets[name] = visible
    return replace(state, widgets=tuple(widgets.items()))


def add_notification(
    state: UiState,
    title: str,
    message: str = "",
    type: str = "info",
    *,
    now: datetime | None = None,
) -> UiState:
    """Prepend a notification, keeping at most MAX_NOTIFICATIONS."""
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Tipo de notificacao invalido: '{type}'")
    notification = Notification(
        id=uuid.uuid4().hex,
        title=title,
        message=message,
        type=type,
        created_at=(now or datetime.now(UTC)).isoformat(),
    )
    notifications = (notification, *state.notifications)[:MAX_NOTIFICATIONS]
    return replace(state, notifications=notifications)


def mark_read(state: UiState, notification_id: str) -> UiState:
    return replace(
        state,
        notifications=tuple(
            replace(n, read=True) if n.id == notification_id else n
            for n in state.notifications
        ),
    )


def mark_all_read(state: UiState) -> UiState:
    return replace(
        state, notifications=tuple(replace(n, read=True) for n in state.notifications)
    )


def remove_notification(state: UiState, notification_id: str) -> UiState:
    return replace(
        state,
        notifications=tuple(n for n in state.notifications if n.id != notification_id),
    )


def unread_count(state: UiState) -> int:
    return sum(1 for n in state.notifications if not n.read)


# --- Persistence ---


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt preferences backed up: %s → %s", path, backup)
    return backup


@contextmanager
def _locked(path: Path) -> Iterator[None]:
    path.parent.mkdir(parents=True, exist_ok=True)
    with FileLock(path.with_suffix(".lock")):
        yield


def load_state() -> UiState:
    """Read persisted preferences, or defaults when absent or corrupt."""
    path = _config.get_preferences_path()
    with _locked(path):
        if not path.exists():
            return UiState()
        try:
            data = json.loads(path.read_text())
            if not isinstance(data, dict):
                raise ValueError("preferences root is not an object")
            return UiState.from_dict(data)
        except (json.JSONDecodeError, ValueError, TypeError, KeyError):
            _backup_corrupt(path)
            return UiState()


def save_state(state: UiState) -> None:
    """Persist *state* atomically."""
    path = _config.get_preferences_path()
    with _locked(path):
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(state.to_dict(), indent=2, ensure_ascii=False) + "\n")
        os.replace(tmp, path)
