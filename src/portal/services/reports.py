from __future__ import annotations

from portal.models.report import EXPORT_FORMATS, REPORT_KINDS, ReportDashboard
from portal.services.api_client import ApiClient
from portal.services.mappers import report_dashboard_from_backend, report_filters_to_backend

_BASE = "/cliente/relatorios"


def _check_kind(kind: str) -> None:
    if kind not in REPORT_KINDS:
        raise ValueError(f"Relatório desconhecido: '{kind}'")


def report_dashboard(client: ApiClient, filters: dict | None = None) -> ReportDashboard:
    data = client.get(f"{_BASE}/dashboard", report_filters_to_backend(filters)) or {}
    return report_dashboard_from_backend(data)


def fetch_report(client: ApiClient, kind: str, filters: dict | None = None) -> dict:
    """Fetch one report (faturamento, impostos, notas, guias) as the backend shapes it.

    Filters: empresa_id, data_inicio, data_fim, competencia.
    """
    _check_kind(kind)
    path = f"{_BASE}/{REPORT_KINDS[kind]}"
    return client.get(path, report_filters_to_backend(filters)) or {}


def export_report(
    client: ApiClient, kind: str, fmt: str, filters: dict | None = None
) -> bytes:
    """Download *kind* rendered as pdf, excel or csv."""
    _check_kind(kind)
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Formato desconhecido: '{fmt}'")
    params = {**report_filters_to_backend(filters), "formato": fmt}
    return client.download(f"{_BASE}/{kind}/exportar", params)
