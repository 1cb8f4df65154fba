import os

from dotenv import load_dotenv

load_dotenv(encoding='utf-8')

DEFAULT_TIMEZONE = os.getenv("BONUS_DEFAULT_TIMEZONE") or "Europe/Amsterdam"
DEFAULT_CURRENCY = os.getenv("BONUS_DEFAULT_CURRENCY") or "EUR"
SUPPORTED_CURRENCIES = ("EUR", "USD", "GBP")

DEFAULT_METRIC = "earnings.amount_cents"

# Conflict retries for a single (rule, worker, window) write
RUN_MAX_ATTEMPTS = int(os.getenv("BONUS_RUN_MAX_ATTEMPTS") or "3")
RUN_RETRY_BACKOFF_SECONDS = float(os.getenv("BONUS_RUN_RETRY_BACKOFF_SECONDS") or "0.05")

ENGINE_SCHEDULE = os.getenv("BONUS_ENGINE_SCHEDULE") or "*/15 * * * *"
ENGINE_SCHEDULE_TIMEZONE = os.getenv("BONUS_ENGINE_SCHEDULE_TIMEZONE") or DEFAULT_TIMEZONE
ENGINE_LOOKBACK_SECONDS = int(os.getenv("BONUS_ENGINE_LOOKBACK_SECONDS") or "3600")
ENGINE_IDLE_SLEEP_SECONDS = int(os.getenv("BONUS_ENGINE_IDLE_SLEEP_SECONDS") or "5")
ENGINE_MAX_SLEEP_SECONDS = int(os.getenv("BONUS_ENGINE_MAX_SLEEP_SECONDS") or "60")
