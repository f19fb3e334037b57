from __future__ import annotations

import logging

from portal.models.invoice import Invoice
from portal.models.page import Page
from portal.services.api_client import ApiClient
from portal.services.mappers import invoice_filters_to_backend, invoice_from_backend
from portal.utils.validators import validate_cancel_reason

logger = logging.getLogger(__name__)

_BASE = "/notas-fiscais"


def list_invoices(client: ApiClient, filters: dict | None = None) -> Page[Invoice]:
    """List invoices with filters and pagination."""
    return client.get_page(_BASE, invoice_filters_to_backend(filters), invoice_from_backend)


def list_drafts(client: ApiClient, filters: dict | None = None) -> Page[Invoice]:
    """List invoices still in draft (rascunho)."""
    return list_invoices(client, {**(filters or {}), "status": "rascunho"})


def get_invoice(client: ApiClient, invoice_id: str) -> Invoice:
    return invoice_from_backend(client.get(f"{_BASE}/{invoice_id}"))


def create_invoice(client: ApiClient, payload: dict) -> Invoice:
    """Create a new invoice. The backend always stores it as a draft."""
    return invoice_from_backend(client.post(_BASE, payload))


def update_invoice(client: ApiClient, invoice_id: str, payload: dict) -> Invoice:
    """Update a draft invoice (the backend rejects anything else)."""
    return invoice_from_backend(client.patch(f"{_BASE}/{invoice_id}", payload))


def emit_invoice(client: ApiClient, invoice_id: str) -> Invoice:
    """Emit a draft. Irreversible: the invoice gets a number and tax validity."""
    invoice = invoice_from_backend(client.post(f"{_BASE}/{invoice_id}/emitir"))
    logger.info("Invoice %s emitted as number %s", invoice.id, invoice.numero)
    return invoice


def cancel_invoice(client: ApiClient, invoice_id: str, reason: str) -> Invoice:
    """Cancel an issued invoice. The reason must have 10 to 500 characters."""
    reason = validate_cancel_reason(reason)
    data = client.post(f"{_BASE}/{invoice_id}/cancelar", {"motivoCancelamento": reason})
    return invoice_from_backend(data)


def remove_invoice(client: ApiClient, invoice_id: str) -> None:
    """Delete a draft invoice."""
    client.delete(f"{_BASE}/{invoice_id}")


def get_stats(client: ApiClient, empresa_id: str | None = None) -> dict:
    """Return issued/draft counters and the month's revenue."""
    params = {"empresaId": empresa_id} if empresa_id else None
    return client.get(f"{_BASE}/stats", params) or {}


def download_pdf(client: ApiClient, invoice_id: str) -> bytes:
    return client.download(f"{_BASE}/{invoice_id}/pdf")


def download_xml(client: ApiClient, invoice_id: str) -> bytes:
    return client.download(f"{_BASE}/{invoice_id}/xml")
