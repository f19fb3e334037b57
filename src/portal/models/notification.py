from __future__ import annotations

from dataclasses import dataclass

SERVER_NOTIFICATION_TYPES = ("critica", "importante", "informativa")


@dataclass(frozen=True)
class ServerNotification:
    """Notification pushed by the backend (distinct from the local notification list)."""

    id: str
    tipo: str
    titulo: str
    mensagem: str
    lida: bool
    data_envio: str
    link: str | None = None
