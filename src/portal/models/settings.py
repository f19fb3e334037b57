from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UserSettings:
    """Account preferences stored on the backend."""

    notificacoes_email: bool = True
    notificacoes_push: bool = False
    tema_escuro: bool = False
    idioma: str = "pt-BR"
