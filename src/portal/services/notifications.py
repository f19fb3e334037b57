"""Notifications sent by the backend.

The dashboard's own notification list lives in ``portal.utils.preferences``;
these are the office-side notices fetched from the server.
"""

from __future__ import annotations

from collections.abc import Iterable

from portal.models.notification import ServerNotification
from portal.models.page import Page
from portal.services.api_client import ApiClient
from portal.services.mappers import (
    notification_filters_to_backend,
    server_notification_from_backend,
)

_BASE = "/notificacoes"


def list_server_notifications(
    client: ApiClient, filters: dict | None = None
) -> Page[ServerNotification]:
    """Filters: tipo, lida, page, limit."""
    return client.get_page(
        _BASE, notification_filters_to_backend(filters), server_notification_from_backend
    )


def unread_notifications_count(client: ApiClient) -> int:
    data = client.get(f"{_BASE}/count") or {}
    return int(data.get("count") or 0)


def mark_notifications_read(client: ApiClient, ids: Iterable[str]) -> None:
    ids = list(ids)
    if ids:
        client.post(f"{_BASE}/marcar-lida", {"ids": ids})


def mark_all_notifications_read(client: ApiClient) -> None:
    client.post(f"{_BASE}/marcar-lida", {"marcarTodas": True})


def delete_server_notification(client: ApiClient, notification_id: str) -> None:
    client.delete(f"{_BASE}/{notification_id}")
