#!/usr/bin/env python3
"""PetMatch: single entry point.

Serves the matching/alerts API, or runs one-off matching and alert jobs
against the configured Elasticsearch cluster.

Usage:
    python main.py serve --port 8000
    python main.py process REPORT_ID
    python main.py reprocess
    python main.py scan --viewer USER_ID --lat 40.41 --lon -3.70 --radius 2
    python main.py watch --viewer USER_ID --lat 40.41 --lon -3.70 --interval 60
    python main.py resolve REPORT_ID
    python main.py import reports.jsonl
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger("petmatch")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PetMatch lost-pet matching and alerts")
    parser.add_argument("--es-url", type=str, default=None, help="Elasticsearch URL")
    parser.add_argument(
        "--es-timeout", type=int, default=120, help="Seconds to wait for Elasticsearch"
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None, help="Server host")
    serve.add_argument("--port", type=int, default=None, help="Server port")

    process = sub.add_parser("process", help="Rank one spotted report")
    process.add_argument("report_id")

    sub.add_parser("reprocess", help="Re-rank every active spotted report")

    scan = sub.add_parser("scan", help="Run one alert scan for a viewer")
    scan.add_argument("--viewer", required=True, help="Viewer user id")
    scan.add_argument("--lat", type=float, required=True)
    scan.add_argument("--lon", type=float, required=True)
    scan.add_argument("--radius", type=float, default=None, help="Radius in km")

    watch = sub.add_parser("watch", help="Poll alerts for a viewer until interrupted")
    watch.add_argument("--viewer", required=True, help="Viewer user id")
    watch.add_argument("--lat", type=float, required=True)
    watch.add_argument("--lon", type=float, required=True)
    watch.add_argument("--radius", type=float, default=None, help="Radius in km")
    watch.add_argument(
        "--interval", type=float, default=None, help="Seconds between scans"
    )

    resolve = sub.add_parser("resolve", help="Mark a report as resolved (pet found)")
    resolve.add_argument("report_id")

    load = sub.add_parser("import", help="Load reports from a JSON Lines file")
    load.add_argument("path", help="One report object per line")

    return parser


def _build_service(es, config):
    from petmatch.embeddings.provider import EmbeddingProvider
    from petmatch.matching.ranker import CandidateRanker
    from petmatch.matching.service import MatchingService
    from petmatch.store.matches import MatchStore
    from petmatch.store.reports import ReportStore

    reports = ReportStore(es, config.reports_index, page_size=config.report_page_size)
    ranker = CandidateRanker(EmbeddingProvider(config), config)
    return MatchingService(reports, MatchStore(es, config.matches_index), ranker)


def _run_reprocess(service) -> None:
    from tqdm import tqdm

    from petmatch.errors import TransientFetchError

    with tqdm(desc="Reprocessing", unit="report") as bar:

        def _progress(done: int, total: int) -> None:
            bar.total = total
            bar.update(1)

        try:
            stats = service.reprocess_all(progress=_progress)
        except TransientFetchError as exc:
            logger.error("Could not fetch reports: %s", exc)
            sys.exit(1)

    logger.info(
        "Processed %d reports (%d failed): %d matches created, %d updated",
        stats.processed,
        stats.failed,
        stats.created,
        stats.updated,
    )


def _build_aggregator(es, config):
    from petmatch.alerts.aggregator import AlertAggregator
    from petmatch.geocoding import NominatimGeocoder
    from petmatch.store.reports import ReportStore

    return AlertAggregator(
        ReportStore(es, config.reports_index, page_size=config.report_page_size),
        NominatimGeocoder(
            url=config.geocoder_url,
            user_agent=config.geocoder_user_agent,
            timeout=config.geocoder_timeout_seconds,
        ),
        config,
    )


def _run_scan(es, config, args: argparse.Namespace) -> None:
    from petmatch.data.schemas import Coordinates

    aggregator = _build_aggregator(es, config)
    coords = Coordinates(latitude=args.lat, longitude=args.lon)
    for alert in aggregator.scan_alerts(args.viewer, coords, args.radius):
        print(alert.model_dump_json())


def _run_watch(es, config, args: argparse.Namespace) -> None:
    from petmatch.alerts.monitor import AlertMonitor
    from petmatch.data.schemas import Coordinates

    def _print_alerts(alerts) -> None:
        logger.info("%d alerts for %s", len(alerts), args.viewer)
        for alert in alerts:
            print(alert.model_dump_json())

    monitor = AlertMonitor(
        _build_aggregator(es, config),
        args.viewer,
        radius_km=args.radius,
        interval_seconds=args.interval,
        on_alerts=_print_alerts,
    )
    monitor.grant_permission(Coordinates(latitude=args.lat, longitude=args.lon))
    try:
        while monitor.running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping alert watch")
    finally:
        monitor.revoke_permission()


def _run_import(es, config, path: Path) -> None:
    from tqdm import tqdm

    from petmatch.data.schemas import Report
    from petmatch.store.reports import ReportStore

    store = ReportStore(es, config.reports_index)
    lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    for line in tqdm(lines, desc="Importing", unit="report"):
        store.save(Report.model_validate_json(line))
    es.indices.refresh(index=config.reports_index)
    logger.info("Imported %d reports into '%s'", len(lines), config.reports_index)


def main() -> None:
    """Dispatch the requested command."""
    args = _build_parser().parse_args()
    command = args.command or "serve"

    from petmatch.config import get_config

    config = get_config()
    es_url = args.es_url or config.elasticsearch_url

    from petmatch.store.es_client import wait_for_elasticsearch

    if not wait_for_elasticsearch(es_url, timeout=args.es_timeout):
        logger.error("Elasticsearch not available after waiting. Exiting.")
        sys.exit(1)

    if command == "serve":
        import uvicorn

        from petmatch.api.app import create_app

        os.environ["ELASTICSEARCH_URL"] = es_url
        host = getattr(args, "host", None) or config.host
        port = getattr(args, "port", None) or config.port
        logger.info("Launching API on %s:%d", host, port)
        uvicorn.run(create_app(), host=host, port=port)
        return

    from elasticsearch import Elasticsearch

    from petmatch.store.es_client import ensure_indices

    es = Elasticsearch(es_url)
    ensure_indices(es, config.reports_index, config.matches_index)

    try:
        if command == "process":
            from petmatch.errors import InputError, TransientFetchError

            try:
                result = _build_service(es, config).process_spotted_report(args.report_id)
            except (LookupError, InputError, TransientFetchError) as exc:
                logger.error("%s", exc)
                sys.exit(1)
            for match in result.matches:
                print(match.model_dump_json())
        elif command == "reprocess":
            _run_reprocess(_build_service(es, config))
        elif command == "scan":
            _run_scan(es, config, args)
        elif command == "watch":
            _run_watch(es, config, args)
        elif command == "import":
            _run_import(es, config, Path(args.path))
        elif command == "resolve":
            from petmatch.store.reports import ReportStore

            store = ReportStore(es, config.reports_index)
            if not store.mark_resolved(args.report_id):
                logger.error("Report %s not found", args.report_id)
                sys.exit(1)
    finally:
        es.close()


if __name__ == "__main__":
    main()
