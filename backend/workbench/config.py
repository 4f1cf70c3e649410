"""
Workbench configuration — single source of truth for collaborator endpoints,
debounce windows, rounding and document-format thresholds.

Import from here in all services rather than hardcoding values.
Every value can be overridden from the environment.
"""
from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ── Collaborator service (profile catalog, previews, reports) ─────────────────
COLLABORATOR_URL: str = os.getenv("WORKBENCH_COLLABORATOR_URL", "http://127.0.0.1:5000")

HTTP_TIMEOUT_S: float = _env_float("WORKBENCH_HTTP_TIMEOUT_S", 10.0)


# ── Recomputation debounce windows (seconds) ──────────────────────────────────
GLASS_DEBOUNCE_S: float = _env_float("WORKBENCH_GLASS_DEBOUNCE_S", 0.4)
WIND_DEBOUNCE_S: float = _env_float("WORKBENCH_WIND_DEBOUNCE_S", 0.5)


# ── Wind defaults ─────────────────────────────────────────────────────────────
DEFAULT_WIND_LOCATION: str = os.getenv("WORKBENCH_DEFAULT_WIND_LOCATION", "Dhaka")


# ── Derived value rounding (decimal places) ───────────────────────────────────
GLASS_DERIVED_DECIMALS: int = 1
GUST_FACTOR_DECIMALS: int = 3
PRESSURE_COEFF_DECIMALS: int = 2


# ── Document format ───────────────────────────────────────────────────────────
# Plain scalars longer than this are single-quoted on export.
QUOTE_LENGTH_THRESHOLD: int = 50
DOCUMENT_INDENT: str = "  "


# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = os.getenv("LOG_FORMAT", "json").lower() != "text"


# ── HTTP API ──────────────────────────────────────────────────────────────────
CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
# Pull profile names and wind locations from the collaborator at startup
REFRESH_CATALOG_ON_STARTUP: bool = os.getenv("WORKBENCH_REFRESH_CATALOG", "1") != "0"
