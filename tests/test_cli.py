from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest
import yaml

from portal.cli import (
    _calc,
    _check_keyring_available,
    _init_config,
    _preflight,
    _remove_env_var,
    _setup_logging,
    _setup_token,
    _upsert_env_var,
    _warn_open_permissions,
    main,
)


class TestMain:
    @patch("portal.cli._setup_logging")
    @patch("portal.tui.app.PortalApp")
    @patch("portal.cli._preflight", return_value=True)
    def test_launches_tui(self, mock_preflight, mock_app_cls, mock_logging):
        mock_app = MagicMock()
        mock_app_cls.return_value = mock_app
        with patch("sys.argv", ["portal-cliente"]):
            main()
        mock_preflight.assert_called_once()
        mock_logging.assert_called_once()
        mock_app.run.assert_called_once()

    @patch("portal.cli._init_config")
    def test_init_dispatches(self, mock_init):
        with patch("sys.argv", ["portal-cliente", "init"]):
            main()
        mock_init.assert_called_once()

    @patch("portal.cli._preflight", return_value=False)
    def test_exit_1_on_failure(self, mock_preflight):
        with patch("sys.argv", ["portal-cliente"]), pytest.raises(SystemExit, match="1"):
            main()

    def test_calc_dispatches(self, capsys):
        with (
            patch("sys.argv", ["portal-cliente", "calc", "1000"]),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()
        assert exc_info.value.code == 0
        assert "Valor líquido: R$ 1.000,00" in capsys.readouterr().out


class TestCalc:
    def test_breakdown(self, capsys):
        assert _calc(["4500", "2", "ir"]) == 0
        out = capsys.readouterr().out
        assert "ISS (2%): R$ 90,00" in out
        assert "IR retido: R$ 67,50" in out
        assert "Total retido: R$ 67,50" in out
        assert "Valor líquido: R$ 4.432,50" in out

    def test_iss_withheld(self, capsys):
        assert _calc(["1000,00", "5", "iss"]) == 0
        out = capsys.readouterr().out
        assert "ISS (5%): R$ 50,00 (retido)" in out
        assert "Valor líquido: R$ 950,00" in out

    def test_usage_without_args(self, capsys):
        assert _calc([]) == 2
        assert "Uso:" in capsys.readouterr().out

    def test_unknown_withholding(self, capsys):
        assert _calc(["100", "2", "icms"]) == 2
        assert "icms" in capsys.readouterr().out

    def test_negative_value(self, capsys):
        assert _calc(["-1"]) == 2
        assert "negativo" in capsys.readouterr().out


class TestPreflight:
    def test_preflight_ok(self, monkeypatch, tmp_path):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "empresa.yaml").write_text(yaml.dump({"cnpj": "11222333000181"}))
        data_dir = tmp_path / "data"
        monkeypatch.setattr("portal.config.get_config_dir", lambda: config_dir)
        monkeypatch.setattr("portal.config.get_data_dir", lambda: data_dir)
        assert _preflight() is True
        assert data_dir.is_dir()

    def test_preflight_no_config(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr("portal.config.get_config_dir", lambda: tmp_path / "missing")
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        assert _preflight() is False
        assert "portal-cliente init" in capsys.readouterr().out

    def test_preflight_no_issuer(self, monkeypatch, tmp_path, capsys):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        monkeypatch.setattr("portal.config.get_config_dir", lambda: config_dir)
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        assert _preflight() is False
        assert "empresa.yaml" in capsys.readouterr().out


class TestSetupLogging:
    def test_level_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PORTAL_LOG_LEVEL", "debug")
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        with patch("portal.cli.logging.basicConfig") as mock_basic:
            _setup_logging()
        kwargs = mock_basic.call_args.kwargs
        assert kwargs["level"] == logging.DEBUG
        assert kwargs["filename"] == tmp_path / "data" / "portal.log"
        assert (tmp_path / "data").is_dir()

    def test_invalid_level_falls_back_to_warning(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PORTAL_LOG_LEVEL", "loud")
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path)
        with patch("portal.cli.logging.basicConfig") as mock_basic:
            _setup_logging()
        assert mock_basic.call_args.kwargs["level"] == logging.WARNING


class TestInitConfig:
    def test_copies_templates(self, monkeypatch, tmp_path):
        config_dir = tmp_path / "config"
        data_dir = tmp_path / "data"
        monkeypatch.setattr("portal.config.get_config_dir", lambda: config_dir)
        monkeypatch.setattr("portal.config.get_data_dir", lambda: data_dir)
        monkeypatch.setattr("builtins.input", lambda _: "n")
        _init_config()
        assert (config_dir / "empresa.yaml.example").exists()
        assert (config_dir / ".env.example").exists()
        assert data_dir.exists()

    def test_template_is_valid_issuer(self, monkeypatch, tmp_path):
        from portal.models.issuer import Issuer

        config_dir = tmp_path / "config"
        monkeypatch.setattr("portal.config.get_config_dir", lambda: config_dir)
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        monkeypatch.setattr("builtins.input", lambda _: "n")
        _init_config()
        data = yaml.safe_load((config_dir / "empresa.yaml.example").read_text())
        assert Issuer.from_dict(data).cnpj

    def test_skips_existing(self, monkeypatch, tmp_path, capsys):
        config_dir = tmp_path / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "empresa.yaml.example").write_text("existing")
        monkeypatch.setattr("portal.config.get_config_dir", lambda: config_dir)
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        monkeypatch.setattr("builtins.input", lambda _: "n")
        _init_config()
        assert (config_dir / "empresa.yaml.example").read_text() == "existing"
        assert "já existe" in capsys.readouterr().out

    def test_token_step_shown(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr("portal.config.get_config_dir", lambda: tmp_path / "config")
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        monkeypatch.setattr("builtins.input", lambda _: "n")
        _init_config()
        assert "PORTAL_API_TOKEN" in capsys.readouterr().out

    def test_token_configured_skips_step(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr("portal.config.get_config_dir", lambda: tmp_path / "config")
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        monkeypatch.setattr("builtins.input", lambda _: "s")
        with patch("portal.cli._setup_token", return_value=True):
            _init_config()
        assert "PORTAL_API_TOKEN" not in capsys.readouterr().out

    def test_eof_during_token_prompt(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr("portal.config.get_config_dir", lambda: tmp_path / "config")
        monkeypatch.setattr("portal.config.get_data_dir", lambda: tmp_path / "data")
        monkeypatch.setattr("builtins.input", MagicMock(side_effect=EOFError))
        _init_config()
        assert "Configuração:" in capsys.readouterr().out


class TestSetupToken:
    def test_skip_on_empty_token(self, tmp_path, monkeypatch):
        monkeypatch.setattr("getpass.getpass", lambda _: "")
        assert _setup_token(tmp_path) is False
        assert not (tmp_path / ".env").exists()

    def test_store_in_dotenv(self, tmp_path, monkeypatch):
        from dotenv import dotenv_values

        monkeypatch.setattr("getpass.getpass", lambda _: "tok-abc")
        monkeypatch.setattr("builtins.input", lambda _: "2")
        monkeypatch.setattr("portal.cli._check_keyring_available", lambda: False)
        with patch("portal.config._delete_keyring_token", return_value=False):
            assert _setup_token(tmp_path) is True
        assert dotenv_values(tmp_path / ".env")["PORTAL_API_TOKEN"] == "tok-abc"

    def test_store_in_keyring(self, tmp_path, monkeypatch):
        monkeypatch.setattr("getpass.getpass", lambda _: "tok-abc")
        monkeypatch.setattr("builtins.input", lambda _: "1")
        monkeypatch.setattr("portal.cli._check_keyring_available", lambda: True)
        with patch("portal.config._set_keyring_token", return_value=True) as mock_set:
            assert _setup_token(tmp_path) is True
        mock_set.assert_called_once_with("tok-abc")
        assert not (tmp_path / ".env").exists()

    def test_keyring_removes_stale_dotenv_token(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("PORTAL_API_TOKEN='old'\nPORTAL_API_URL='http://x'\n")
        monkeypatch.setattr("getpass.getpass", lambda _: "tok-abc")
        monkeypatch.setattr("builtins.input", lambda _: "1")
        monkeypatch.setattr("portal.cli._check_keyring_available", lambda: True)
        with patch("portal.config._set_keyring_token", return_value=True):
            _setup_token(tmp_path)
        content = env_file.read_text()
        assert "PORTAL_API_TOKEN" not in content
        assert "PORTAL_API_URL" in content

    def test_keyring_failure_falls_back_to_dotenv(self, tmp_path, monkeypatch, capsys):
        from dotenv import dotenv_values

        monkeypatch.setattr("getpass.getpass", lambda _: "tok-abc")
        monkeypatch.setattr("builtins.input", lambda _: "1")
        monkeypatch.setattr("portal.cli._check_keyring_available", lambda: True)
        with patch("portal.config._set_keyring_token", return_value=False):
            assert _setup_token(tmp_path) is True
        assert "Falha ao armazenar no keychain" in capsys.readouterr().out
        assert dotenv_values(tmp_path / ".env")["PORTAL_API_TOKEN"] == "tok-abc"

    def test_reprompts_invalid_choice(self, tmp_path, monkeypatch):
        inputs = iter(["9", "1"])
        monkeypatch.setattr("getpass.getpass", lambda _: "tok-abc")
        monkeypatch.setattr("builtins.input", lambda _: next(inputs))
        monkeypatch.setattr("portal.cli._check_keyring_available", lambda: True)
        with patch("portal.config._set_keyring_token", return_value=True) as mock_set:
            _setup_token(tmp_path)
        mock_set.assert_called_once()


class TestUpsertEnvVar:
    def test_creates_new_file(self, tmp_path):
        env_file = tmp_path / "sub" / ".env"
        _upsert_env_var(env_file, "KEY", "value")
        content = env_file.read_text()
        assert "KEY=" in content
        assert "value" in content

    def test_updates_existing_key(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("MY_KEY='old'\nOTHER='keep'\n")
        _upsert_env_var(env_file, "MY_KEY", "new")
        content = env_file.read_text()
        assert "new" in content
        assert "'old'" not in content
        assert "OTHER=" in content

    def test_handles_special_chars(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.touch()
        _upsert_env_var(env_file, "TOKEN", "abc #def")
        from dotenv import dotenv_values

        assert dotenv_values(env_file)["TOKEN"] == "abc #def"


class TestRemoveEnvVar:
    def test_removes_existing_key(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("KEEP='yes'\nREMOVE='me'\n")
        _remove_env_var(env_file, "REMOVE")
        content = env_file.read_text()
        assert "KEEP=" in content
        assert "REMOVE" not in content

    def test_noop_missing_file(self, tmp_path):
        _remove_env_var(tmp_path / ".env", "KEY")


class TestWarnOpenPermissions:
    def test_warns_group_readable(self, tmp_path, capsys):
        env_file = tmp_path / ".env"
        env_file.write_text("SECRET=x\n")
        env_file.chmod(0o644)
        _warn_open_permissions(env_file)
        assert "permissões abertas" in capsys.readouterr().out

    def test_no_warn_restricted(self, tmp_path, capsys):
        env_file = tmp_path / ".env"
        env_file.write_text("SECRET=x\n")
        env_file.chmod(0o600)
        _warn_open_permissions(env_file)
        assert capsys.readouterr().out == ""


class TestCheckKeyringAvailable:
    def test_available_with_real_backend(self):
        mock_kr = MagicMock()
        mock_kr.get_keyring.return_value = MagicMock()
        mock_fail_module = MagicMock()
        mock_fail_module.Keyring = type("FailKeyring", (), {})
        with patch.dict(
            "sys.modules",
            {"keyring": mock_kr, "keyring.backends.fail": mock_fail_module},
        ):
            assert _check_keyring_available() is True

    def test_unavailable_with_fail_backend(self):
        mock_fail_cls = type("Keyring", (), {})
        mock_kr = MagicMock()
        mock_kr.get_keyring.return_value = mock_fail_cls()
        mock_fail_module = MagicMock()
        mock_fail_module.Keyring = mock_fail_cls
        with patch.dict(
            "sys.modules",
            {"keyring": mock_kr, "keyring.backends.fail": mock_fail_module},
        ):
            assert _check_keyring_available() is False
