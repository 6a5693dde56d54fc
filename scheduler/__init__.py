"""
Scheduler module initialization.
"""

from scheduler.run_pipeline import (
    SweepSummary,
    load_sources_config,
    main,
    run_digest_job,
    run_lifecycle_sweep,
    run_scrape_sweep,
    seed_sources,
)

__all__ = [
    "SweepSummary",
    "load_sources_config",
    "main",
    "run_digest_job",
    "run_lifecycle_sweep",
    "run_scrape_sweep",
    "seed_sources",
]
