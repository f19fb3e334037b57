from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Guide:
    """Tax payment guide (guia) issued by the accounting office."""

    id: str
    tipo: str
    descricao: str
    competencia: str
    valor: Decimal
    data_vencimento: str
    status: str  # pendente | paga | vencida | cancelada
    data_pagamento: str | None = None
    valor_pago: Decimal | None = None
    codigo_barras: str = ""
    linha_digitavel: str = ""

    @property
    def is_open(self) -> bool:
        return self.status in ("pendente", "vencida")
