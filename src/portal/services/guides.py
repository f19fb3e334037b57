from __future__ import annotations

from datetime import date
from decimal import Decimal

from portal.models.guide import Guide
from portal.models.page import Page
from portal.services.api_client import ApiClient
from portal.services.mappers import guide_from_backend
from portal.services.taxes import to_cents

_BASE = "/guias"


def list_guides(client: ApiClient, filters: dict | None = None) -> Page[Guide]:
    """List tax guides. Filters: empresa_id, status, tipo, page, limit."""
    params: dict = {}
    for src, dst in (("empresa_id", "empresaId"), ("page", "page"), ("tipo", "tipo")):
        if filters and filters.get(src):
            params[dst] = filters[src]
    if filters and filters.get("status"):
        params["status"] = str(filters["status"]).upper()
    if filters and filters.get("limit"):
        params["perPage"] = filters["limit"]
    return client.get_page(_BASE, params, guide_from_backend)


def get_guide(client: ApiClient, guide_id: str) -> Guide:
    return guide_from_backend(client.get(f"{_BASE}/{guide_id}"))


def pay_guide(
    client: ApiClient,
    guide_id: str,
    paid_on: date,
    amount: Decimal | None = None,
) -> Guide:
    """Record the payment of a guide."""
    payload: dict = {"dataPagamento": paid_on.isoformat()}
    if amount is not None:
        payload["valorPago"] = float(to_cents(amount))
    return guide_from_backend(client.post(f"{_BASE}/{guide_id}/pagar", payload))


def cancel_guide(client: ApiClient, guide_id: str) -> Guide:
    return guide_from_backend(client.post(f"{_BASE}/{guide_id}/cancelar"))


def upcoming_guides(client: ApiClient, days: int = 7) -> list[Guide]:
    """Guides due within the next *days* days."""
    data = client.get(f"{_BASE}/proximas-vencer", {"dias": days}) or []
    return [guide_from_backend(g) for g in data]


def overdue_guides(client: ApiClient) -> list[Guide]:
    data = client.get(f"{_BASE}/vencidas") or []
    return [guide_from_backend(g) for g in data]


def guides_summary(client: ApiClient, empresa_id: str | None = None) -> dict:
    """Counts and totals of pending/overdue/paid guides."""
    params = {"empresaId": empresa_id} if empresa_id else None
    return client.get(f"{_BASE}/resumo", params) or {}


def download_guide_pdf(client: ApiClient, guide_id: str) -> bytes:
    return client.download(f"{_BASE}/{guide_id}/pdf")
