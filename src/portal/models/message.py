from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Message:
    """Message exchanged with the accounting office."""

    id: str
    assunto: str
    conteudo: str
    remetente_nome: str
    remetente_tipo: str  # cliente | contador
    lida: bool
    data_envio: str
    data_leitura: str | None = None
    resposta_de_id: str | None = None
