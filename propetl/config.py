"""
Pipeline configuration.

Defaults match a full overnight refresh; every value can be overridden
through the environment (or the CLI flags in ``main.py``).
"""

from __future__ import annotations

import os


def _int_env(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, default))
    except ValueError:
        return default


def _float_env(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, default))
    except ValueError:
        return default


# Per-source record ceilings
DEFAULT_PARCEL_LIMIT = _int_env("ETL_PARCEL_LIMIT", 500_000)
DEFAULT_VALUATION_LIMIT = _int_env("ETL_VALUATION_LIMIT", 500_000)
DEFAULT_TRANSACTION_LIMIT = _int_env("ETL_TRANSACTION_LIMIT", 200_000)
DEFAULT_COMPLIANCE_LIMIT = _int_env("ETL_COMPLIANCE_LIMIT", 200_000)
# HPD violation roll-up is off unless a limit is given
DEFAULT_VIOLATION_LIMIT = _int_env("ETL_VIOLATION_LIMIT", 0)

# Paging / throttling
FETCH_PAGE_SIZE = _int_env("SOCRATA_PAGE_SIZE", 10_000)
FETCH_PAGE_DELAY_SECONDS = _float_env("SOCRATA_PAGE_DELAY", 0.3)
FETCH_TIMEOUT_SECONDS = _float_env("SOCRATA_TIMEOUT", 60.0)
SOCRATA_APP_TOKEN = os.environ.get("SOCRATA_APP_TOKEN") or None

# Batch sizes
STAGING_BATCH_SIZE = 500
PROPERTY_BATCH_SIZE = 500
ENRICH_BATCH_SIZE = 500
COMPS_BATCH_SIZE = 1000
PROGRESS_LOG_EVERY = 10_000

# Normalizer heuristics
DEFAULT_SQFT = 1500
DEFAULT_PRICE_PER_SQFT = 400
ASSESSMENT_MULTIPLIER = 3
MAX_ASSESSED_ESTIMATE = 50_000_000
MAX_SQFT_ESTIMATE = 10_000_000
OPPORTUNITY_SCORE_MIN = 50
OPPORTUNITY_SCORE_SPAN = 30

# Comparables
MAX_COMPS_PER_PROPERTY = 5
COMP_AVERAGE_SQFT = 1500
COMP_MAX_PRICE_PER_SQFT = 10_000
COMP_MAX_ADJUSTED_PRICE = 2_000_000_000
