"""Full-reset NYC property ETL: staging, normalization, enrichment and comparables."""

from propetl.runner import build_context, run_full_import

__all__ = ["build_context", "run_full_import"]
