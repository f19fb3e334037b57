from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

TICKET_CATEGORIES = ("duvida", "problema", "solicitacao", "sugestao")
TICKET_PRIORITIES = ("baixa", "media", "alta", "urgente")

# Hours the office has to answer a ticket, by priority
SLA_HOURS = {"urgente": 4, "alta": 8, "media": 24, "baixa": 48}

_CLOSED = ("resolvido", "fechado")


def response_deadline(prioridade: str, opened_at: datetime) -> datetime:
    """When the first answer is due; unknown priorities get the ``media`` window."""
    return opened_at + timedelta(hours=SLA_HOURS.get(prioridade, SLA_HOURS["media"]))


@dataclass(frozen=True)
class TicketMessage:
    id: str
    conteudo: str
    autor_nome: str
    autor_tipo: str  # cliente | contador
    criado_em: str


@dataclass(frozen=True)
class Ticket:
    """Support ticket opened by the client for the accounting office."""

    id: str
    assunto: str
    descricao: str
    categoria: str
    prioridade: str
    status: str  # aberto | em_andamento | aguardando_cliente | resolvido | fechado
    criado_em: datetime | None = None
    prazo_resposta: datetime | None = None
    atribuido_para: str | None = None
    mensagens: tuple[TicketMessage, ...] = ()

    @property
    def is_open(self) -> bool:
        return self.status not in _CLOSED

    @property
    def deadline(self) -> datetime | None:
        """Response deadline sent by the backend, else derived from the priority."""
        if self.prazo_resposta is not None:
            return self.prazo_resposta
        if self.criado_em is not None:
            return response_deadline(self.prioridade, self.criado_em)
        return None

    def sla_breached(self, now: datetime) -> bool:
        deadline = self.deadline
        return self.is_open and deadline is not None and deadline < now
