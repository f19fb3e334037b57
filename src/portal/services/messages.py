from __future__ import annotations

from portal.models.message import Message
from portal.models.page import Page
from portal.services.api_client import ApiClient
from portal.services.mappers import message_from_backend, message_to_backend

_BASE = "/cliente/comunicacao/mensagens"


def _params(filters: dict | None) -> dict:
    params: dict = {}
    if filters and filters.get("lida") is not None:
        params["lida"] = "true" if filters["lida"] else "false"
    if filters and filters.get("page"):
        params["page"] = filters["page"]
    if filters and filters.get("limit"):
        params["perPage"] = filters["limit"]
    return params


def list_received(client: ApiClient, filters: dict | None = None) -> Page[Message]:
    """Inbox. Filters: lida, page, limit."""
    return client.get_page(f"{_BASE}/recebidas", _params(filters), message_from_backend)


def list_sent(client: ApiClient, filters: dict | None = None) -> Page[Message]:
    return client.get_page(f"{_BASE}/enviadas", _params(filters), message_from_backend)


def get_message(client: ApiClient, message_id: str) -> Message:
    return message_from_backend(client.get(f"{_BASE}/{message_id}"))


def send_message(client: ApiClient, data: dict) -> Message:
    """Send a message. Raises ValueError when subject or body is empty."""
    return message_from_backend(client.post(_BASE, message_to_backend(data)))


def mark_message_read(client: ApiClient, message_id: str) -> None:
    client.post(f"{_BASE}/{message_id}/lida")


def unread_messages_count(client: ApiClient) -> int:
    data = client.get(f"{_BASE}/count") or {}
    return int(data.get("count") or 0)
