from __future__ import annotations

import logging

from portal.models.page import Page
from portal.models.payer import Payer
from portal.services.api_client import ApiClient
from portal.services.mappers import (
    only_digits,
    payer_filters_to_backend,
    payer_from_backend,
    payer_to_backend,
    payer_update_to_backend,
)

logger = logging.getLogger(__name__)

_BASE = "/tomadores"


def search_payers(client: ApiClient, filters: dict | None = None) -> Page[Payer]:
    """Search payers by name (``busca``), document, type, with pagination."""
    return client.get_page(_BASE, payer_filters_to_backend(filters), payer_from_backend)


def get_payer(client: ApiClient, payer_id: str) -> Payer:
    return payer_from_backend(client.get(f"{_BASE}/{payer_id}"))


def create_payer(client: ApiClient, data: dict) -> Payer:
    """Register a payer. *data* is frontend-shaped (tipo, documento, endereco...)."""
    payer = payer_from_backend(client.post(_BASE, payer_to_backend(data)))
    logger.info("Payer %s created", payer.id)
    return payer


def update_payer(client: ApiClient, payer_id: str, data: dict) -> Payer:
    return payer_from_backend(client.patch(f"{_BASE}/{payer_id}", payer_update_to_backend(data)))


def remove_payer(client: ApiClient, payer_id: str) -> None:
    client.delete(f"{_BASE}/{payer_id}")


def find_by_document(client: ApiClient, documento: str, empresa_id: str) -> Payer | None:
    """Return the payer registered with *documento* (CPF/CNPJ), or None."""
    page = client.get_page(
        _BASE,
        {"cpfCnpj": only_digits(documento), "empresaId": empresa_id},
        payer_from_backend,
    )
    return page.items[0] if page.items else None


def recent_payers(client: ApiClient, empresa_id: str, limit: int = 5) -> list[Payer]:
    """Most recently used payers, for quick selection in the wizard."""
    page = client.get_page(
        _BASE, {"empresaId": empresa_id, "perPage": limit}, payer_from_backend
    )
    return page.items
