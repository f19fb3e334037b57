from __future__ import annotations

from portal.models.page import Page
from portal.models.ticket import Ticket, TicketMessage
from portal.services.api_client import ApiClient
from portal.services.mappers import (
    ticket_filters_to_backend,
    ticket_from_backend,
    ticket_message_from_backend,
    ticket_to_backend,
)

_BASE = "/cliente/tickets"


def list_tickets(client: ApiClient, filters: dict | None = None) -> Page[Ticket]:
    """List the client's tickets. Filters: status, categoria, prioridade, page, limit."""
    return client.get_page(_BASE, ticket_filters_to_backend(filters), ticket_from_backend)


def get_ticket(client: ApiClient, ticket_id: str) -> Ticket:
    """Fetch a ticket with its message thread."""
    return ticket_from_backend(client.get(f"{_BASE}/{ticket_id}"))


def create_ticket(client: ApiClient, empresa_id: str, data: dict) -> Ticket:
    """Open a ticket for *empresa_id*. Priority defaults to ``media``.

    Raises ValueError for a missing subject or an unknown category/priority.
    """
    return ticket_from_backend(client.post(f"{_BASE}/{empresa_id}", ticket_to_backend(data)))


def reply_ticket(client: ApiClient, ticket_id: str, conteudo: str) -> TicketMessage:
    conteudo = conteudo.strip()
    if not conteudo:
        raise ValueError("Mensagem vazia")
    data = client.post(f"{_BASE}/{ticket_id}/mensagem", {"conteudo": conteudo})
    return ticket_message_from_backend(data or {})


def close_ticket(client: ApiClient, ticket_id: str) -> Ticket:
    return ticket_from_backend(client.post(f"{_BASE}/{ticket_id}/fechar"))


def reopen_ticket(client: ApiClient, ticket_id: str) -> Ticket:
    return ticket_from_backend(client.post(f"{_BASE}/{ticket_id}/reabrir"))
