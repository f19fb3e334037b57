from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

# Report name -> backend path segment
REPORT_KINDS = {
    "faturamento": "faturamento",
    "impostos": "impostos",
    "notas": "notas-emitidas",
    "guias": "guias",
}
EXPORT_FORMATS = ("pdf", "excel", "csv")


@dataclass(frozen=True)
class ReportDashboard:
    """Month-over-month figures shown at the top of the reports page."""

    faturamento_total: Decimal
    faturamento_mes_anterior: Decimal
    variacao_faturamento: Decimal
    impostos_total: Decimal
    impostos_mes_anterior: Decimal
    variacao_impostos: Decimal
    notas_emitidas: int
    notas_mes_anterior: int
    variacao_notas: Decimal
    guias_pendentes: int
    guias_vencidas: int
