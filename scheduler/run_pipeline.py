"""
Main pipeline orchestrator - the entry points for scheduled runs.

This is what you call via cron or manual trigger:

    regwatch scrape [--source ID]     scrape sources, create and dispatch alerts
    regwatch digest [--window-hours]  send daily digests
    regwatch expire                   expire alerts past their expiry date

Each job isolates source- and recipient-level failures and reports them in
its summary; only an unreachable database aborts a run.
"""

import argparse
import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from classifier import classify
from core.config import Settings, get_settings
from core.exceptions import ExtractionFailure, PersistenceUnavailable, RegwatchError
from diff_engine import diff_and_log, merge_facts
from extractor import Extractor, PlaywrightExtractor
from lifecycle import default_expiry, expire_alerts
from monitoring import MetricsCollector, OperatorAlertHandler
from notifications import DigestAggregator, DigestResult, DispatchResult, Mailer, NotificationDispatcher
from schemas.facts import ScrapedFacts
from schemas.sources import SourcesFile
from storage import (
    AlertRepository,
    DatabaseManager,
    ExtractionLogRepository,
    SourceRecord,
    SourceRepository,
)
from utils.logger import setup_logging
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepSummary:
    """Outcome of one scrape sweep."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    changes_detected: int = 0
    alerts_created: int = 0
    redispatched: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    dispatches: List[DispatchResult] = field(default_factory=list)
    dispatch_errors: List[Dict[str, Any]] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    duration_s: float = 0.0


def load_sources_config(config_file: str) -> SourcesFile:
    """Load and validate the sources YAML file."""
    with open(config_file, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return SourcesFile.model_validate(raw)


def seed_sources(
    config_file: Optional[str] = None,
    db: Optional[DatabaseManager] = None,
    settings: Optional[Settings] = None,
) -> int:
    """
    Create or update sources from the YAML file.

    Returns:
        Number of sources seeded
    """
    settings = settings or get_settings()
    db = db or DatabaseManager(settings.DATABASE_URL)
    config = load_sources_config(config_file or settings.SOURCES_FILE)

    repo = SourceRepository(db)
    for source in config.sources:
        repo.upsert_source(
            source.id,
            source.name,
            url=source.url,
            priority=source.priority,
            facts=source.facts,
        )

    logger.info(f"Seeded {len(config.sources)} source(s)")
    return len(config.sources)


def _timed_extract(extractor: Extractor, url: str) -> Tuple[ScrapedFacts, float]:
    start = time.time()
    facts = extractor.extract(url)
    return facts, (time.time() - start) * 1000


def run_scrape_sweep(
    source_id: Optional[str] = None,
    extractor: Optional[Extractor] = None,
    db: Optional[DatabaseManager] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    settings: Optional[Settings] = None,
    metrics: Optional[MetricsCollector] = None,
    operator: Optional[OperatorAlertHandler] = None,
) -> SweepSummary:
    """
    Scrape every source (or one), detect changes, create and dispatch alerts.

    Alerts left undispatched by an interrupted earlier run are dispatched
    first. A failure while processing one source is recorded against that
    source and the sweep moves on.

    Args:
        source_id: Only scrape this source (manual re-scrape)
        extractor: Extractor override (defaults to PlaywrightExtractor)
        db: Database manager override
        dispatcher: Dispatcher override
        settings: Settings override
        metrics: Metrics collector for this run
        operator: Operator alert handler

    Returns:
        SweepSummary

    Raises:
        PersistenceUnavailable: If the database cannot be reached
    """
    start_time = time.time()
    settings = settings or get_settings()
    db = db or DatabaseManager(settings.DATABASE_URL)
    db.ping()

    metrics = metrics or MetricsCollector()
    operator = operator or OperatorAlertHandler(slack_webhook=settings.SLACK_WEBHOOK_URL or "")
    extractor = extractor or PlaywrightExtractor(settings)
    dispatcher = dispatcher or NotificationDispatcher(db, settings=settings, metrics=metrics)

    source_repo = SourceRepository(db)
    alert_repo = AlertRepository(db)
    log_repo = ExtractionLogRepository(db)
    summary = SweepSummary()

    def record_failure(
        source: SourceRecord,
        error: RegwatchError,
        load_time_ms: float = 0.0,
        attempted: bool = True,
    ) -> None:
        summary.failed += 1
        summary.errors.append({
            "source_id": source.id,
            "error_code": error.error_code,
            "message": error.message,
        })
        # Sources that were never fetched do not count against the success rate
        if attempted:
            metrics.log_extraction(source.id, success=False, load_time_ms=load_time_ms, error_code=error.error_code)
        log_repo.log_extraction(
            source_id=source.id,
            url=source.url,
            success=False,
            load_time_ms=load_time_ms,
            error_code=error.error_code,
            error_message=error.message,
        )

    def apply_scrape(source: SourceRecord, facts: ScrapedFacts, load_time_ms: float) -> List[str]:
        """Persist one scrape; returns the ids of the alerts it created."""
        stored = source.to_facts()
        diff = diff_and_log(source.id, source.name, stored, facts)

        alert_ids = []
        for change in diff.changes:
            now = utcnow()
            alert = alert_repo.create(
                classify(change, source.name),
                source_id=source.id,
                source_url=facts.source_url or source.url,
                effective_date=now,
                expiry_date=default_expiry(now, settings),
            )
            alert_ids.append(alert.id)

        # Stored facts only move forward once every change has an alert
        source_repo.update_facts(source.id, merge_facts(stored, facts))

        summary.successful += 1
        summary.changes_detected += len(diff.changes)
        summary.alerts_created += len(alert_ids)
        metrics.log_extraction(source.id, success=True, fields_found=len(facts.fields_found()), load_time_ms=load_time_ms)
        log_repo.log_extraction(
            source_id=source.id,
            url=source.url,
            success=True,
            load_time_ms=load_time_ms,
            fields_found=len(facts.fields_found()),
            changes_detected=len(diff.changes),
        )
        return alert_ids

    def dispatch_alert(alert_id: str) -> None:
        try:
            summary.dispatches.append(dispatcher.dispatch(alert_id))
        except OperationalError:
            raise
        except Exception as e:
            logger.error(f"Dispatch of alert {alert_id} failed, will retry next sweep: {e}", exc_info=True)
            summary.dispatch_errors.append({"alert_id": alert_id, "message": str(e)})

    try:
        pending = alert_repo.list_undispatched()
        if pending:
            logger.warning(f"Re-dispatching {len(pending)} alert(s) left undelivered by an earlier run")
        for alert_id in pending:
            dispatch_alert(alert_id)
            summary.redispatched += 1

        sources = source_repo.list_sources(source_id)
        if source_id is not None and not sources:
            logger.error(f"Source {source_id} not found")
        summary.total = len(sources)
        logger.info(f"Starting scrape sweep over {len(sources)} source(s)")

        scrapeable = []
        for source in sources:
            if source.url:
                scrapeable.append(source)
            else:
                logger.error(f"✗ {source.name}: no URL configured")
                record_failure(source, ExtractionFailure(
                    f"No URL configured for {source.name}",
                    error_code="EXTRACT_004",
                    details={"source_id": source.id},
                ), attempted=False)

        if scrapeable:
            workers = max(1, min(settings.SCRAPE_MAX_WORKERS, len(scrapeable)))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(_timed_extract, extractor, source.url): source
                    for source in scrapeable
                }
                # Results are applied here, on the coordinating thread
                for future in as_completed(futures):
                    source = futures[future]
                    try:
                        facts, load_time_ms = future.result()
                    except ExtractionFailure as e:
                        logger.error(f"✗ Failed to scrape {source.name}: {e}")
                        record_failure(source, e)
                        continue
                    except Exception as e:
                        logger.error(f"✗ Failed to scrape {source.name}: {e}", exc_info=True)
                        record_failure(source, ExtractionFailure(
                            f"Unexpected extraction error: {e}",
                            details={"source_id": source.id},
                        ))
                        continue

                    try:
                        alert_ids = apply_scrape(source, facts, load_time_ms)
                    except OperationalError:
                        raise
                    except Exception as e:
                        logger.error(f"✗ Failed to process {source.name}: {e}", exc_info=True)
                        record_failure(source, RegwatchError(
                            f"Processing scraped facts failed: {e}",
                            error_code="SWEEP_001",
                            details={"source_id": source.id},
                        ), load_time_ms)
                        continue

                    logger.info(f"✓ Scraped {source.name}: {len(facts.fields_found())} field(s)")
                    for alert_id in alert_ids:
                        dispatch_alert(alert_id)

    except OperationalError as e:
        raise PersistenceUnavailable(f"Database error during scrape sweep: {e.orig}") from e

    summary.duration_s = time.time() - start_time
    summary.metrics = metrics.get_metrics_summary()
    logger.info(
        f"Scrape sweep complete in {summary.duration_s:.1f}s: "
        f"{summary.successful}/{summary.total} succeeded, {summary.failed} failed, "
        f"{summary.changes_detected} change(s), {summary.alerts_created} alert(s), "
        f"{len(summary.dispatch_errors)} dispatch failure(s)"
    )
    logger.info(f"Run metrics: {summary.metrics}")

    if summary.failed or summary.dispatch_errors:
        details = {e["source_id"]: e["error_code"] for e in summary.errors}
        details.update({e["alert_id"]: "dispatch failed" for e in summary.dispatch_errors})
        operator.send_alert(
            title="Scrape failures",
            message=(
                f"{summary.failed} of {summary.total} source(s) failed, "
                f"{len(summary.dispatch_errors)} alert dispatch(es) failed"
            ),
            severity="warning",
            details=details,
        )

    rate_alert = metrics.check_success_rate(threshold=settings.SUCCESS_RATE_THRESHOLD)
    if rate_alert:
        operator.send_alert(
            title="Low extraction success rate",
            message=rate_alert["message"],
            severity="critical",
            details={"success_rate": f"{rate_alert['success_rate']:.1%}"},
        )

    return summary


def run_digest_job(
    now=None,
    window_hours: Optional[int] = None,
    db: Optional[DatabaseManager] = None,
    mailer: Optional[Mailer] = None,
    settings: Optional[Settings] = None,
) -> DigestResult:
    """
    Send daily digests.

    Raises:
        PersistenceUnavailable: If the database cannot be reached
    """
    settings = settings or get_settings()
    db = db or DatabaseManager(settings.DATABASE_URL)
    db.ping()

    try:
        return DigestAggregator(db, mailer=mailer, settings=settings).run(now=now, window_hours=window_hours)
    except OperationalError as e:
        raise PersistenceUnavailable(f"Database error during digest job: {e.orig}") from e


def run_lifecycle_sweep(
    now=None,
    db: Optional[DatabaseManager] = None,
    settings: Optional[Settings] = None,
) -> int:
    """
    Expire ACTIVE alerts past their expiry date.

    Returns:
        Number of alerts expired

    Raises:
        PersistenceUnavailable: If the database cannot be reached
    """
    settings = settings or get_settings()
    db = db or DatabaseManager(settings.DATABASE_URL)
    db.ping()

    try:
        return expire_alerts(db, now=now)
    except OperationalError as e:
        raise PersistenceUnavailable(f"Database error during lifecycle sweep: {e.orig}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="regwatch", description="Regulatory change monitor")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    seed = subparsers.add_parser("seed-sources", help="Create or update sources from YAML")
    seed.add_argument("--file", help="Sources file (defaults to SOURCES_FILE)")

    scrape = subparsers.add_parser("scrape", help="Run the scrape sweep")
    scrape.add_argument("--source", help="Only scrape this source id")

    digest = subparsers.add_parser("digest", help="Send daily digests")
    digest.add_argument("--window-hours", type=int, help="Override DIGEST_WINDOW_HOURS")

    subparsers.add_parser("expire", help="Expire alerts past their expiry date")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_FILE)

    db = DatabaseManager(settings.DATABASE_URL)
    try:
        if args.command == "init-db":
            db.create_all()
            return 0

        if args.command == "seed-sources":
            config_file = args.file or settings.SOURCES_FILE
            if not Path(config_file).exists():
                logger.error(f"Sources file not found: {config_file}")
                return 1
            seed_sources(config_file, db=db, settings=settings)
            return 0

        if args.command == "scrape":
            summary = run_scrape_sweep(source_id=args.source, db=db, settings=settings)
            return 0 if summary.total and summary.failed < summary.total else 1

        if args.command == "digest":
            result = run_digest_job(window_hours=args.window_hours, db=db, settings=settings)
            return 0 if not result.emails_failed else 1

        if args.command == "expire":
            run_lifecycle_sweep(db=db, settings=settings)
            return 0

    except PersistenceUnavailable as e:
        logger.critical(f"Job aborted: {e}")
        OperatorAlertHandler(slack_webhook=settings.SLACK_WEBHOOK_URL or "").send_alert(
            title=f"regwatch {args.command} aborted",
            message=str(e),
            severity="critical",
        )
        return 2
    except RegwatchError as e:
        logger.error(f"regwatch {args.command} failed: {e}")
        return 1
    except ValidationError as e:
        logger.error(f"Invalid sources file: {e}")
        return 1
    finally:
        db.dispose()

    return 1


if __name__ == "__main__":
    sys.exit(main())
