'''Environment-driven configuration for the daily verse generator.

Every setting can be overridden from the ENVIRONMENT (or a `.env` file in the
working directory, loaded once on import).
'''
import os

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True), override=False)


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


# Calculate the path to our default verse map
# (unless overridden by ENVIRONMENT)
_dv_dir = os.path.dirname(__file__)
_default_map = os.path.join(_dv_dir, "data", "verse_map.json")
VERSE_MAP_FILE = os.environ.get("VERSE_MAP_FILE", _default_map)

OUTPUT_DIR = os.environ.get("DAILY_OUTPUT_DIR", os.path.join(os.getcwd(), "public"))
TIMEZONE = os.environ.get("DAILY_TIMEZONE", "America/Toronto")
TRANSLATION = os.environ.get("DAILY_TRANSLATION", "web")

BIBLE_API_BASE = os.environ.get("BIBLE_API_BASE", "https://bible-api.com")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

MAX_TRIES = _env_int("DAILY_MAX_TRIES", 15)
HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 15.0)

RETRY_ATTEMPTS = _env_int("RETRY_ATTEMPTS", 3)
RETRY_BASE_DELAY = _env_float("RETRY_BASE_DELAY", 0.5)
RETRY_BACKOFF = _env_float("RETRY_BACKOFF", 2.0)

TEXT_CACHE_DIR = os.environ.get("TEXT_CACHE_DIR")
ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN")
