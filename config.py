# config.py — settings from environment / .env
# - Rien n'est obligatoire au chargement : chaque étape vérifie ce dont elle a besoin
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from errors import ConfigurationMissing

ROOT_DIR = Path(__file__).resolve().parent
load_dotenv(dotenv_path=ROOT_DIR / ".env")

QTY_POLICIES = ("zero", "skip", "strict")


def _get_env(*keys: str, default: str|None = None) -> str|None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError:
        raise ConfigurationMissing(f"{keys[0]} must be a number, got {v!r}")


def _parse_origins(s: str|None) -> list[str]:
    out = [x.strip() for x in (s or "").split(",") if x.strip()]
    return out or ["*"]


@dataclass(frozen=True)
class Settings:
    sheet_id: str|None = None
    service_account_file: str = "service_account.json"
    ledger_range: str = "Balance!A1:B20"
    qty_policy: str = "zero"
    apps_script_url: str|None = None
    ledger_timeout: float = 15.0
    telegram_bot_token: str|None = None
    telegram_chat_id: str|None = None
    telegram_thread_id: str|None = None
    timezone: str = "Asia/Kuala_Lumpur"
    cors_origins: tuple[str, ...] = ("*",)
    port: int = 8000
    log_level: str = "INFO"


def load_settings() -> Settings:
    policy = (_get_env("LEDGER_QTY_POLICY", default="zero") or "zero").lower()
    if policy not in QTY_POLICIES:
        raise ConfigurationMissing(f"LEDGER_QTY_POLICY must be one of {', '.join(QTY_POLICIES)}, got {policy!r}")
    return Settings(
        sheet_id=_get_env("GOOGLE_SHEET_ID", "SHEET_ID"),
        service_account_file=_get_env("GOOGLE_SERVICE_ACCOUNT_FILE", default=str(ROOT_DIR / "service_account.json")),
        ledger_range=_get_env("LEDGER_RANGE", default="Balance!A1:B20"),
        qty_policy=policy,
        apps_script_url=_get_env("GOOGLE_APPS_SCRIPT_URL"),
        ledger_timeout=_get_float("LEDGER_TIMEOUT", default=15.0),
        telegram_bot_token=_get_env("TELEGRAM_BOT_TOKEN", "BOT_TOKEN"),
        telegram_chat_id=_get_env("TELEGRAM_CHAT_ID"),
        telegram_thread_id=_get_env("TELEGRAM_THREAD_ID"),
        timezone=_get_env("TIMEZONE", default="Asia/Kuala_Lumpur"),
        cors_origins=tuple(_parse_origins(_get_env("CORS_ORIGINS"))),
        port=int(_get_float("PORT", default=8000)),
        log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
    )


def require(value: str|None, name: str) -> str:
    if not value:
        raise ConfigurationMissing(f"{name} is not set (.env)")
    return value


settings = load_settings()
