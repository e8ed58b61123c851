"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from gravitas.config import load_config


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_loads_required_keys_and_defaults(tmp_path):
    cfg = load_config(_write(tmp_path, """
site_name: Gravitas
app_url: https://gravitas.example/
admin_username: admin
admin_password: 123456
"""))
    assert cfg.site_name == "Gravitas"
    assert cfg.app_url == "https://gravitas.example"
    assert cfg.admin_password == "123456"
    assert cfg.otp_ttl_minutes == 10
    assert cfg.otp_resend_cooldown_seconds == 60
    assert cfg.page_limit == 20


def test_overrides(tmp_path):
    cfg = load_config(_write(tmp_path, """
site_name: G
app_url: http://localhost:3000
admin_username: root
admin_password: pw
otp_ttl_minutes: 5
session_ttl_days: 7
"""))
    assert cfg.otp_ttl_minutes == 5
    assert cfg.session_ttl_days == 7


def test_env_var_selects_file(tmp_path, monkeypatch):
    path = _write(tmp_path, "site_name: FromEnv\napp_url: x\nadmin_username: a\nadmin_password: b\n")
    monkeypatch.setenv("GRAVITAS_CONFIG", str(path))
    assert load_config().site_name == "FromEnv"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_missing_required_key(tmp_path):
    with pytest.raises(KeyError):
        load_config(_write(tmp_path, "site_name: Gravitas\n"))


def test_config_is_frozen(tmp_path):
    cfg = load_config(_write(tmp_path, "site_name: G\napp_url: x\nadmin_username: a\nadmin_password: b\n"))
    with pytest.raises(AttributeError):
        cfg.site_name = "other"
