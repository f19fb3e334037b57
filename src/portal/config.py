from __future__ import annotations

import os
from datetime import timedelta, timezone
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "portal-cliente"
KEYRING_SERVICE = "portal-cliente"
KEYRING_USERNAME = "api-token"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Only checks sources available before .env is loaded (env var set in the
    shell, dev layout, an existing platformdirs directory).
    """
    from_env = os.environ.get("PORTAL_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/portal/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("PORTAL_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("PORTAL_DATA_DIR", "data", kind="data")


BRT = timezone(timedelta(hours=-3))

DEFAULT_API_URL = "http://localhost:3000/api/v1"
CNPJ_LOOKUP_URL = "https://brasilapi.com.br/api/cnpj/v1"

# (connect, read) seconds
API_TIMEOUT = (10, 30)
DOWNLOAD_TIMEOUT = (10, 60)

DEFAULT_PER_PAGE = 20


def get_api_url() -> str:
    """Return the backend base URL without a trailing slash."""
    return os.environ.get("PORTAL_API_URL", DEFAULT_API_URL).rstrip("/")


# --- Keyring helpers ---


def _get_keyring_token() -> str | None:
    """Try to get the API token from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


def _set_keyring_token(token: str) -> bool:
    """Store the API token in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, token)
        return True
    except Exception:
        return False


def _delete_keyring_token() -> bool:
    """Remove the API token from the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
        return True
    except Exception:
        return False


def get_api_token() -> str:
    """Return the bearer token issued by the auth service.

    Priority: 1) PORTAL_API_TOKEN env var, 2) OS keyring.
    Raises KeyError if neither source has a token.
    """
    token = os.environ.get("PORTAL_API_TOKEN")
    if token:
        return token
    token = _get_keyring_token()
    if token:
        return token
    raise KeyError("PORTAL_API_TOKEN")


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_issuer() -> dict:
    """Load the issuing company profile from config/empresa.yaml."""
    return load_yaml(get_config_dir() / "empresa.yaml")


def get_preferences_path() -> Path:
    """Return the local UI preferences file."""
    return get_data_dir() / "preferences.json"


def get_downloads_dir() -> Path:
    """Return the directory where downloaded PDFs/XMLs are written."""
    return get_data_dir() / "downloads"


def get_log_path() -> Path:
    return get_data_dir() / "portal.log"
