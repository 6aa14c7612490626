from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

SUPPORTED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
SUPPORTED_RATE_LIMIT_SCHEMES = {"memory", "redis", "rediss"}

PROVIDER_BASE_URL_VARS = (
    "AIRTEL_BASE_URL",
    "DPO_BASE_URL",
    "MPESA_BASE_URL",
    "PESAPAL_BASE_URL",
)
PROVIDER_WEBHOOK_SECRET_VARS = (
    "AIRTEL_WEBHOOK_SECRET",
    "DPO_WEBHOOK_SECRET",
    "MPESA_WEBHOOK_SECRET",
    "PESAPAL_WEBHOOK_SECRET",
)


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _is_production() -> bool:
    return (_env("ENV") or "development").lower() == "production"


def collect_missing_required_env_vars() -> list[str]:
    missing: list[str] = []

    for var_name in ("SECRET_KEY", "MONGO_URL", "DB_NAME"):
        if _env(var_name) is None:
            missing.append(var_name)

    # Permissive webhook verification is only tolerated outside production.
    if _is_production():
        for var_name in PROVIDER_WEBHOOK_SECRET_VARS:
            if _env(var_name) is None:
                missing.append(var_name)

    return sorted(set(missing))


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    for var_name in PROVIDER_BASE_URL_VARS:
        value = _env(var_name)
        if value is not None and not value.lower().startswith(("http://", "https://")):
            invalid_values.append(f"{var_name} must be an http(s) URL")

    log_level = (_env("LOG_LEVEL") or "INFO").upper()
    if log_level not in SUPPORTED_LOG_LEVELS:
        invalid_values.append("LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    storage_uri = _env("RATE_LIMIT_STORAGE_URI") or "memory://"
    scheme = storage_uri.split("://", maxsplit=1)[0].lower()
    if scheme not in SUPPORTED_RATE_LIMIT_SCHEMES:
        invalid_values.append("RATE_LIMIT_STORAGE_URI must use one of: memory://, redis://, rediss://")

    timeout = _env("PROVIDER_TIMEOUT_SECONDS")
    if timeout is not None:
        try:
            if float(timeout) <= 0:
                raise ValueError("must be positive")
        except ValueError:
            invalid_values.append("PROVIDER_TIMEOUT_SECONDS must be a positive number")

    return invalid_values


def validate_required_environment() -> None:
    missing_vars = collect_missing_required_env_vars()
    invalid_values = collect_invalid_env_values()
    if not missing_vars and not invalid_values:
        return

    message_lines = ["Application startup blocked by invalid environment configuration."]
    if missing_vars:
        message_lines.append("")
        message_lines.append("Missing required environment variables:")
        message_lines.extend(f"- {name}" for name in missing_vars)
    if invalid_values:
        message_lines.append("")
        message_lines.append("Invalid environment values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str
    secret_key: str
    cors_origins: tuple[str, ...]
    debug_include_error_details: bool
    log_level: str
    mongo_url: str
    db_name: str
    redis_url: str | None
    rate_limit_storage_uri: str
    initiate_rate_limit: str
    public_base_url: str
    provider_timeout_seconds: float
    airtel_base_url: str
    airtel_client_id: str | None
    airtel_client_secret: str | None
    airtel_webhook_secret: str | None
    airtel_country: str
    dpo_base_url: str
    dpo_payment_page_url: str
    dpo_company_token: str | None
    dpo_service_type: str | None
    dpo_webhook_secret: str | None
    mpesa_base_url: str
    mpesa_consumer_key: str | None
    mpesa_consumer_secret: str | None
    mpesa_shortcode: str | None
    mpesa_passkey: str | None
    mpesa_callback_url: str | None
    mpesa_webhook_secret: str | None
    pesapal_base_url: str
    pesapal_consumer_key: str | None
    pesapal_consumer_secret: str | None
    pesapal_callback_url: str | None
    pesapal_ipn_id: str | None
    pesapal_webhook_secret: str | None
    pesapal_country: str

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    public_base_url = (os.getenv("PUBLIC_BASE_URL") or "http://localhost:8000").rstrip("/")

    return Settings(
        env=os.getenv("ENV", "development"),
        secret_key=os.getenv("SECRET_KEY", ""),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS")),
        debug_include_error_details=os.getenv("DEBUG_INCLUDE_ERROR_DETAILS", "false").lower()
        in {"1", "true", "yes"},
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        mongo_url=os.getenv("MONGO_URL", ""),
        db_name=os.getenv("DB_NAME", ""),
        redis_url=_env("REDIS_URL"),
        rate_limit_storage_uri=_env("RATE_LIMIT_STORAGE_URI") or "memory://",
        initiate_rate_limit=_env("INITIATE_RATE_LIMIT") or "30/minute",
        public_base_url=public_base_url,
        provider_timeout_seconds=float(_env("PROVIDER_TIMEOUT_SECONDS") or "15"),
        airtel_base_url=_env("AIRTEL_BASE_URL") or "https://openapi.airtel.africa",
        airtel_client_id=_env("AIRTEL_CLIENT_ID"),
        airtel_client_secret=_env("AIRTEL_CLIENT_SECRET"),
        airtel_webhook_secret=_env("AIRTEL_WEBHOOK_SECRET"),
        airtel_country=(_env("AIRTEL_COUNTRY") or "KE").upper(),
        dpo_base_url=_env("DPO_BASE_URL") or "https://secure.3gdirectpay.com/API/v6/",
        dpo_payment_page_url=_env("DPO_PAYMENT_PAGE_URL") or "https://secure.3gdirectpay.com/payv2.php",
        dpo_company_token=_env("DPO_COMPANY_TOKEN"),
        dpo_service_type=_env("DPO_SERVICE_TYPE"),
        dpo_webhook_secret=_env("DPO_WEBHOOK_SECRET"),
        mpesa_base_url=_env("MPESA_BASE_URL") or "https://sandbox.safaricom.co.ke",
        mpesa_consumer_key=_env("MPESA_CONSUMER_KEY"),
        mpesa_consumer_secret=_env("MPESA_CONSUMER_SECRET"),
        mpesa_shortcode=_env("MPESA_SHORTCODE"),
        mpesa_passkey=_env("MPESA_PASSKEY"),
        mpesa_callback_url=_env("MPESA_CALLBACK_URL")
        or f"{public_base_url}/v1/gateways/isa-pay/webhook/mpesa",
        mpesa_webhook_secret=_env("MPESA_WEBHOOK_SECRET"),
        pesapal_base_url=_env("PESAPAL_BASE_URL") or "https://pay.pesapal.com/v3",
        pesapal_consumer_key=_env("PESAPAL_CONSUMER_KEY"),
        pesapal_consumer_secret=_env("PESAPAL_CONSUMER_SECRET"),
        pesapal_callback_url=_env("PESAPAL_CALLBACK_URL")
        or f"{public_base_url}/v1/gateways/myplug-pay/webhook/pesapal",
        pesapal_ipn_id=_env("PESAPAL_IPN_ID"),
        pesapal_webhook_secret=_env("PESAPAL_WEBHOOK_SECRET"),
        pesapal_country=(_env("PESAPAL_COUNTRY") or "KE").upper(),
    )
