from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

import pytest

from portal.models.invoice import Invoice
from portal.models.page import Page, PageMeta


def make_page(items: list) -> Page:
    return Page(items=items, meta=PageMeta(len(items), 1, 20, 1, False, False))


@pytest.fixture
def invoices() -> list[Invoice]:
    return [
        Invoice(
            id="nf-1",
            status="emitida",
            numero=17,
            tomador_nome="CLIENTE EXEMPLO SA",
            tomador_documento="11444777000161",
            valor_servico=Decimal("4500"),
            valor_liquido=Decimal("4432.50"),
            competencia="2024-03-01",
        ),
        Invoice(
            id="nf-2",
            status="rascunho",
            tomador_nome="OUTRO CLIENTE LTDA",
            tomador_documento="11222333000181",
            valor_servico=Decimal("1200"),
            competencia="2024-03-01",
        ),
    ]


@pytest.fixture
def mock_config(monkeypatch, tmp_path, issuer_dict, payer, invoices):
    """Patch config and backend calls so the TUI can launch without real files or network.

    Yields the service mocks keyed by function name.
    """
    monkeypatch.setenv("PORTAL_DATA_DIR", str(tmp_path))
    with (
        patch("portal.config.load_issuer", return_value=issuer_dict),
        patch(
            "portal.services.invoices.get_stats",
            return_value={"totalEmitidas": 4, "totalRascunhos": 1, "faturamentoMes": "13500.00"},
        ) as get_stats,
        patch(
            "portal.services.invoices.list_invoices", return_value=make_page(invoices)
        ) as list_invoices,
        patch("portal.services.payers.recent_payers", return_value=[payer]) as recent_payers,
        patch(
            "portal.services.payers.search_payers", return_value=make_page([payer])
        ) as search_payers,
        patch(
            "portal.services.guides.guides_summary",
            return_value={"pendentes": 2, "vencidas": 1},
        ) as guides_summary,
        patch("portal.services.guides.upcoming_guides", return_value=[]) as upcoming_guides,
        patch("portal.services.guides.list_guides", return_value=make_page([])) as list_guides,
        patch("portal.services.guides.overdue_guides", return_value=[]) as overdue_guides,
    ):
        yield {
            "get_stats": get_stats,
            "list_invoices": list_invoices,
            "recent_payers": recent_payers,
            "search_payers": search_payers,
            "guides_summary": guides_summary,
            "upcoming_guides": upcoming_guides,
            "list_guides": list_guides,
            "overdue_guides": overdue_guides,
        }


@pytest.fixture
def page_of():
    """Factory wrapping a list of records in a single Page."""
    return make_page
