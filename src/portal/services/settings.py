from __future__ import annotations

from portal.models.settings import UserSettings
from portal.services.api_client import ApiClient
from portal.services.mappers import settings_from_backend, settings_update_to_backend

_BASE = "/cliente/configuracoes"


def get_settings(client: ApiClient) -> UserSettings:
    return settings_from_backend(client.get(f"{_BASE}/preferencias") or {})


def update_settings(client: ApiClient, **changes: object) -> UserSettings:
    """PATCH only the given fields. Raises TypeError for an unknown field."""
    payload = settings_update_to_backend(changes)
    return settings_from_backend(client.patch(f"{_BASE}/preferencias", payload) or {})


def change_password(client: ApiClient, current: str, new: str, confirmation: str) -> None:
    if new != confirmation:
        raise ValueError("A confirmação não confere com a nova senha")
    client.post(
        f"{_BASE}/alterar-senha",
        {"senhaAtual": current, "novaSenha": new, "confirmarSenha": confirmation},
    )
