from __future__ import annotations

import pytest

from core import settings as settings_module


def _set_minimal_valid_env(monkeypatch: pytest.MonkeyPatch) -> None:
    values = {
        "ENV": "development",
        "SECRET_KEY": "secret",
        "MONGO_URL": "mongodb://localhost:27017",
        "DB_NAME": "isa_payments",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    for key in (
        *settings_module.PROVIDER_BASE_URL_VARS,
        *settings_module.PROVIDER_WEBHOOK_SECRET_VARS,
        "LOG_LEVEL",
        "RATE_LIMIT_STORAGE_URI",
        "PROVIDER_TIMEOUT_SECONDS",
        "PUBLIC_BASE_URL",
        "MPESA_CALLBACK_URL",
        "PESAPAL_CALLBACK_URL",
    ):
        monkeypatch.delenv(key, raising=False)


def test_collect_missing_required_env_vars_reports_base_vars(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.setenv("DB_NAME", "   ")

    missing = settings_module.collect_missing_required_env_vars()

    assert missing == ["DB_NAME", "SECRET_KEY"]


def test_webhook_secrets_are_optional_outside_production(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)

    assert settings_module.collect_missing_required_env_vars() == []


def test_webhook_secrets_are_required_in_production(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("MPESA_WEBHOOK_SECRET", "mpesa-secret")

    missing = settings_module.collect_missing_required_env_vars()

    assert "AIRTEL_WEBHOOK_SECRET" in missing
    assert "DPO_WEBHOOK_SECRET" in missing
    assert "PESAPAL_WEBHOOK_SECRET" in missing
    assert "MPESA_WEBHOOK_SECRET" not in missing


def test_collect_invalid_env_values_flags_each_bad_value(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.setenv("AIRTEL_BASE_URL", "ftp://openapi.airtel.africa")
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    monkeypatch.setenv("RATE_LIMIT_STORAGE_URI", "memcached://localhost:11211")
    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "0")

    invalid = settings_module.collect_invalid_env_values()

    assert "AIRTEL_BASE_URL must be an http(s) URL" in invalid
    assert any(message.startswith("LOG_LEVEL") for message in invalid)
    assert any(message.startswith("RATE_LIMIT_STORAGE_URI") for message in invalid)
    assert "PROVIDER_TIMEOUT_SECONDS must be a positive number" in invalid


def test_validate_required_environment_raises_single_error(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.delenv("MONGO_URL", raising=False)
    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "abc")

    with pytest.raises(RuntimeError) as exc_info:
        settings_module.validate_required_environment()

    message = str(exc_info.value)
    assert "- MONGO_URL" in message
    assert "PROVIDER_TIMEOUT_SECONDS must be a positive number" in message


def test_get_settings_derives_callback_urls(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://pay.example.com/")
    settings_module.get_settings.cache_clear()
    try:
        settings = settings_module.get_settings()
    finally:
        settings_module.get_settings.cache_clear()

    assert settings.mpesa_callback_url == "https://pay.example.com/v1/gateways/isa-pay/webhook/mpesa"
    assert settings.pesapal_callback_url == "https://pay.example.com/v1/gateways/myplug-pay/webhook/pesapal"
    assert settings.rate_limit_storage_uri == "memory://"
    assert settings.initiate_rate_limit == "30/minute"
    assert settings.is_production is False
