from __future__ import annotations

import getpass
import logging
import os
import stat
import sys
from importlib.resources import files
from pathlib import Path

_TEMPLATES = (
    ("empresa.yaml.example", "empresa.yaml.example"),
    ("env.example", ".env.example"),
)


def _check_keyring_available() -> bool:
    """Check if keyring is installed with a usable backend."""
    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        return not isinstance(keyring.get_keyring(), FailKeyring)
    except Exception:
        return False


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed."""
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    """Remove a key from a .env file if present."""
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Warn if .env file has group/other read permissions (Unix only)."""
    try:
        mode = env_file.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IROTH):
            print(f"\n  AVISO: {env_file} tem permissões abertas.")
            print("  Recomendação: chmod 600", env_file)
    except OSError:
        pass


def _setup_token(config_dir: Path) -> bool:
    """Interactive API token setup. Returns True if a token was stored."""
    print()
    print("Token de acesso à API")
    print("─────────────────────")
    print()

    token = getpass.getpass("Token (vazio para pular): ").strip()
    if not token:
        print("  Configuração do token pulada.")
        return False

    print()
    print("Onde deseja armazenar o token?")

    keyring_ok = _check_keyring_available()
    options: list[tuple[str, str]] = []
    if keyring_ok:
        options.append(("1", "Keychain do sistema (recomendado)"))
    options.append(("2", "Arquivo .env no diretório de configuração"))

    for num, label in options:
        print(f"  {num}. {label}")

    if not keyring_ok:
        print()
        print("  Nota: keychain do sistema indisponível (sem backend configurado).")

    print()
    valid_choices = {num for num, _ in options}
    choice = ""
    while choice not in valid_choices:
        choice = input(f"Escolha [{'/'.join(sorted(valid_choices))}]: ").strip()

    from portal.config import _delete_keyring_token, _set_keyring_token

    env_file = config_dir / ".env"
    if choice == "1":
        if _set_keyring_token(token):
            print("  Token armazenado no keychain do sistema.")
            _remove_env_var(env_file, "PORTAL_API_TOKEN")
            return True
        print("  ERRO: Falha ao armazenar no keychain. Salvando no .env como alternativa.")
    else:
        _delete_keyring_token()

    _upsert_env_var(env_file, "PORTAL_API_TOKEN", token)
    print(f"  Token salvo em {env_file}")
    _warn_open_permissions(env_file)
    return True


def _init_config() -> None:
    """Copy bundled config templates to the user's config/data directories."""
    from portal.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    templates = files("portal") / "templates"

    config_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    for src_name, dest_name in _TEMPLATES:
        dest = config_dir / dest_name
        if dest.exists():
            print(f"  já existe: {dest}")
            continue
        with (templates / src_name).open("rb") as f:
            dest.write_bytes(f.read())
        print(f"  criado: {dest}")
        copied += 1

    print()
    print(f"Configuração: {config_dir}")
    print(f"Dados:   {data_dir}")

    print()
    token_configured = False
    try:
        answer = input("Deseja configurar o token de acesso agora? [S/n]: ").strip().lower()
        if answer in ("", "s", "sim", "y", "yes"):
            token_configured = _setup_token(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    if copied:
        print("Próximos passos:")
        print(f"  1. cp {config_dir / 'empresa.yaml.example'} {config_dir / 'empresa.yaml'}")
        print("  2. Edite empresa.yaml com os dados do seu CNPJ")
        if not token_configured:
            print("  3. Defina PORTAL_API_TOKEN no .env ou execute 'portal-cliente init' novamente")
            print("  4. Execute: portal-cliente")
        else:
            print("  3. Execute: portal-cliente")
    else:
        print("Nenhum arquivo novo criado (todos já existiam).")


def _preflight() -> bool:
    """Verify minimal config before launching the TUI.

    Auto-creates the data directory. Returns False with a helpful
    message when the config directory or empresa.yaml is missing.
    """
    from portal.config import get_config_dir, get_data_dir

    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)

    config_dir = get_config_dir()
    if not config_dir.is_dir():
        print(f"Erro: diretório de configuração não encontrado: {config_dir}")
        print("Execute 'portal-cliente init' para criar os arquivos de exemplo.")
        return False
    if not (config_dir / "empresa.yaml").is_file():
        print(f"Erro: empresa.yaml não encontrado em {config_dir}")
        print("Execute 'portal-cliente init' e configure a empresa emissora.")
        return False
    return True


def _setup_logging() -> None:
    """Send log records to a file so they never draw over the TUI."""
    from portal.config import get_log_path

    level_name = os.environ.get("PORTAL_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.WARNING
    log_path = get_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_path,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _calc(args: list[str]) -> int:
    """``calc <valor> [aliquota_iss] [ir pis cofins csll inss iss]``: print the tax breakdown."""
    from portal.models.invoice import WITHHOLDING_NAMES, WithholdingFlags
    from portal.services.taxes import compute_taxes
    from portal.utils.formatters import format_brl, format_percent

    if not args:
        print("Uso: portal-cliente calc <valor> [aliquota_iss] [retenções...]")
        print(f"Retenções: {' '.join(WITHHOLDING_NAMES)}")
        return 2

    value, rest = args[0].replace(",", "."), args[1:]
    iss_rate = "0"
    if rest and rest[0] not in WITHHOLDING_NAMES:
        iss_rate, rest = rest[0].replace(",", "."), rest[1:]
    unknown = [name for name in rest if name not in WITHHOLDING_NAMES]
    if unknown:
        print(f"Erro: retenção desconhecida: {', '.join(unknown)}")
        return 2

    flags = WithholdingFlags(**{name: True for name in rest})
    try:
        taxes = compute_taxes(value, iss_rate, flags)
    except ValueError as e:
        print(f"Erro: {e}")
        return 2

    print(f"Valor do serviço: {format_brl(value)}")
    iss_line = f"ISS ({format_percent(iss_rate)}): {format_brl(taxes.iss_amount)}"
    print(iss_line + (" (retido)" if flags.iss else ""))
    for name in flags.active():
        if name != "iss":
            print(f"{name.upper()} retido: {format_brl(taxes.amount_for(name))}")
    print(f"Total retido: {format_brl(taxes.total_withheld)}")
    print(f"Valor líquido: {format_brl(taxes.net_amount)}")
    return 0


def main() -> None:
    """Entry point for the Portal Cliente CLI/TUI."""
    if len(sys.argv) > 1 and sys.argv[1] == "init":
        _init_config()
        return
    if len(sys.argv) > 1 and sys.argv[1] == "calc":
        sys.exit(_calc(sys.argv[2:]))

    if not _preflight():
        sys.exit(1)

    _setup_logging()

    from portal.tui.app import PortalApp

    app = PortalApp()
    app.run()


if __name__ == "__main__":
    main()
