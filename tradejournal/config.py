"""Application configuration via environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'tradejournal.db'}"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Telegram
    telegram_bot_token: str = ""
    admin_chat_id: str = ""  # receives fatal cycle errors

    # Price providers, tried in this order each cycle
    price_providers: list[str] = [
        "coingecko",
        "binance",
        "coinmarketcap",
        "coincap",
        "coinapi",
        "uniblock",
    ]
    coinmarketcap_api_key: str = ""
    coincap_api_key: str = ""
    coinapi_key: str = ""
    uniblock_api_key: str = ""
    http_timeout_seconds: float = 15.0
    asset_list_ttl_hours: float = 24.0

    # Monitoring
    liquidation_alert_pct: float = 5.0
    alert_interval: str = "5m"
    report_interval: str = "1h"
    scheduler_enabled: bool = True

    model_config = {"env_prefix": "TJ_", "env_file": ".env"}


settings = Settings()
