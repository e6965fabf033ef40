"""Runtime configuration, read from the process environment.

A ``.env`` file in the working directory is loaded first so that API keys can
be kept out of the source tree.  Modules read these constants through
``config.NAME`` at call time, which lets tests monkeypatch them.
"""

import os
import re

from dotenv import load_dotenv

load_dotenv()


def env_flag(name: str, default: bool) -> bool:
    """Interpret an environment variable as a boolean flag."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


# Proxy service
HOST = os.environ.get("HOST", "0.0.0.0")  # noqa: S104
PORT = int(os.environ.get("PORT", "3000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
UPSTREAM_TIMEOUT = 10.0

# BarcodeLookup.com
BARCODE_LOOKUP_BASE_URL = os.environ.get("BARCODE_LOOKUP_BASE_URL", "https://api.barcodelookup.com/v3/products")
BARCODE_LOOKUP_API_KEY = os.environ.get("BARCODE_LOOKUP_API_KEY", "")
PROXY_URL = os.environ.get("PROXY_URL", "http://localhost:3000/api")
USE_PROXY = env_flag("USE_PROXY", True)

# UPCItemDB
UPCITEMDB_TRIAL_ENDPOINT = "https://api.upcitemdb.com/prod/trial/lookup"
UPCITEMDB_PAID_ENDPOINT = "https://api.upcitemdb.com/prod/v1/lookup"
UPCITEMDB_USE_PAID_PLAN = env_flag("UPCITEMDB_USE_PAID_PLAN", False)
UPCITEMDB_API_KEY = os.environ.get("UPCITEMDB_API_KEY", "")
UPCITEMDB_KEY_TYPE = os.environ.get("UPCITEMDB_KEY_TYPE", "3scale")

# UPCDatabase.org.  The fallback key is the public demo key.
UPC_DATABASE_ENDPOINT = "https://api.upcdatabase.org/product"
UPC_DATABASE_API_KEY = os.environ.get("UPC_DATABASE_API_KEY", "C0D1F5CEBE1CC47A17C986642FEF7B53")
UPC_DATABASE_CORS_PROXY = os.environ.get("UPC_DATABASE_CORS_PROXY", "https://api.allorigins.win/raw?url=")
UPC_DATABASE_USE_CORS_PROXY = env_flag("UPC_DATABASE_USE_CORS_PROXY", True)

# Active provider for the lookup gateway: barcodelookup, upcitemdb or upcdatabase
LOOKUP_PROVIDER = os.environ.get("LOOKUP_PROVIDER", "barcodelookup").strip().lower()

_SECRET_PARAM_RE = re.compile(r"((?:api)?key=)[^&]+", re.IGNORECASE)
_ENCODED_SECRET_PARAM_RE = re.compile(r"((?:api)?key%3D)(?:(?!%26)[^&])+", re.IGNORECASE)


def mask_secret(url: str) -> str:
    """Hide ``key=``/``apikey=`` query values in *url* for logging.

    Also handles a target URL that has been percent-encoded into a relay URL.
    """
    masked = _SECRET_PARAM_RE.sub(r"\1***", url)
    return _ENCODED_SECRET_PARAM_RE.sub(r"\1***", masked)
