"""
Settings for the Sale Scraper extraction engine.

Values are read once from the environment (and a local .env file) at import
time. Components read them with getattr(settings, NAME, default) and accept
constructor overrides, so nothing here is mutated at runtime.
"""

import logging.config
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_list(name: str, default: str = "") -> list:
    """Split a comma separated environment variable into a list."""
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


DEBUG = os.getenv("DEBUG", "False") == "True"


# Logging

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "sale_scraper": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
        },
    },
}


def configure_logging() -> None:
    """Apply the LOGGING dictConfig (used by the command line entry point)."""
    logging.config.dictConfig(LOGGING)


# External API Configuration

# Language-model oracle (OpenAI-compatible chat completions endpoint)
OPENAI_API_KEY = os.getenv(
    "OPENAI_API_KEY",
    os.getenv("AI_INTEGRATIONS_OPENAI_API_KEY", ""),
)
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
AI_REQUEST_TIMEOUT = float(os.getenv("AI_REQUEST_TIMEOUT", "60"))

# Maximum characters of page content sent to the oracle
AI_MAX_CONTENT_LENGTH = int(os.getenv("AI_MAX_CONTENT_LENGTH", "50000"))

# ScrapingBee for the rendering proxy tier and JS-rendered search pages
SCRAPINGBEE_API_KEY = os.getenv("SCRAPINGBEE_API_KEY", "")

# Shopping-index product resolver (searches go through ScrapingBee)
SHOPPING_SEARCH_ENABLED = os.getenv("SHOPPING_SEARCH_ENABLED", "False") == "True"

# Domains known to block direct fetches; only these go through the proxy tier
PROXY_REQUIRED_DOMAINS = _env_list(
    "PROXY_REQUIRED_DOMAINS",
    "nordstrom.com,saksfifthavenue.com,neimanmarcus.com,bergdorfgoodman.com,"
    "bloomingdales.com,macys.com",
)


# Sentry Configuration

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0"))

if SENTRY_DSN:
    import sentry_sdk

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Crawler Configuration

# Direct page fetch timeout (seconds)
CRAWLER_REQUEST_TIMEOUT = float(os.getenv("CRAWLER_REQUEST_TIMEOUT", "10"))

# Rendering proxy timeout (seconds); remote JS execution can take a while
PROXY_REQUEST_TIMEOUT = float(os.getenv("PROXY_REQUEST_TIMEOUT", "90"))

# How long the proxy waits after page load before returning HTML (ms)
PROXY_WAIT_MS = int(os.getenv("PROXY_WAIT_MS", "5000"))

# Headless browser navigation timeout (seconds)
HEADLESS_TIMEOUT = float(os.getenv("HEADLESS_TIMEOUT", "30"))

# Maximum attempts per strategy
CRAWLER_MAX_RETRIES = int(os.getenv("CRAWLER_MAX_RETRIES", "3"))

# Backoff base: delay before retry k is RETRY_BASE_DELAY ** (k + 1) seconds
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "2"))


# Confidence thresholds

# A tier result at or above this confidence stops escalation
ACCEPTABLE_CONFIDENCE = int(os.getenv("ACCEPTABLE_CONFIDENCE", "60"))

# Below this, an extraction is refused outright
MIN_CONFIDENCE = int(os.getenv("MIN_CONFIDENCE", "50"))
