"""Shared constants and defaults."""

# Interval to hours mapping for APScheduler
INTERVAL_HOURS: dict[str, float] = {
    "1m": 1 / 60,
    "5m": 5 / 60,
    "15m": 0.25,
    "30m": 0.5,
    "1h": 1.0,
    "2h": 2.0,
    "4h": 4.0,
    "8h": 8.0,
    "1d": 24.0,
}

DIRECTIONS = ("long", "short")

# Quote currency Binance tickers are built against; USD and USDT are treated as equal
QUOTE_SUFFIX = "USDT"

CYCLE_ALERTS = "alerts"
CYCLE_REPORT = "report"
CYCLE_KINDS = (CYCLE_ALERTS, CYCLE_REPORT)
