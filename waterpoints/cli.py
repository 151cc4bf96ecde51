"""CLI entrypoint for the water point visit harvester."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from waterpoints.common.config_loader import HarvestSettings, load_settings
from waterpoints.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from waterpoints.common.credentials import get_token
from waterpoints.common.errors import ConfigError, PipelineError
from waterpoints.common.ids import generate_run_id
from waterpoints.common.logging import build_logger, log_event
from waterpoints.common.time_utils import utc_timestamp_iso
from waterpoints.harvest.client import ApiClient
from waterpoints.harvest.partition_store import PartitionStore
from waterpoints.harvest.runner import load_cached_records, run_harvest
from waterpoints.pipeline.export import collect_columns, write_table
from waterpoints.pipeline.reports import write_run_summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--config", default="./config/harvest.yml")
    parser.add_argument("--overlay-config", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--start-year", type=int, default=None)
    parser.add_argument("--end-year", type=int, default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def load_run_settings(args: argparse.Namespace) -> HarvestSettings:
    overlay = Path(args.overlay_config) if args.overlay_config else None
    settings = load_settings(Path(args.config), overlay_path=overlay)
    return settings.with_years(args.start_year, args.end_year)


async def harvest_command(
    settings: HarvestSettings,
    data_dir: Path,
    run_id: str,
    client: ApiClient | None = None,
) -> int:
    """Run the full harvest; returns the number of failed units."""
    started_at = utc_timestamp_iso()
    store = PartitionStore(data_dir)
    api = client or ApiClient.from_settings(settings)
    try:
        run = await run_harvest(
            api,
            store,
            settings.years,
            partition_concurrency=settings.partition_concurrency,
            enrichment_concurrency=settings.enrichment_concurrency,
        )
    finally:
        await api.close()

    records = run.records
    table_path = write_table(data_dir / settings.table_filename, records)
    failures = run.all_failures
    write_run_summary(
        data_dir / settings.summary_filename,
        run_id=run_id,
        started_at=started_at,
        finished_at=utc_timestamp_iso(),
        years=settings.years,
        counts={
            "partitions": len(run.keys),
            "partitions_cached": run.cached_count,
            "partitions_fetched": run.fetched_count,
            "partitions_failed": run.failed_partition_count,
            "enrichments_failed": run.enrichment_failure_count,
            "records": len(records),
            "columns": len(collect_columns(records)),
            "source_lookups": run.source_lookups,
        },
        failures=failures,
    )
    log_event(
        logging.getLogger(__name__),
        f"wrote {len(records)} records to {table_path}",
        stage="harvest",
        event="TABLE_WRITTEN",
        status="partial" if failures else "ok",
        rows_out=len(records),
    )
    return len(failures)


def export_command(settings: HarvestSettings, data_dir: Path) -> int:
    """Rebuild the table from cache files; returns the number of skipped files."""
    records, failures = load_cached_records(PartitionStore(data_dir), settings.years)
    table_path = write_table(data_dir / settings.table_filename, records)
    log_event(
        logging.getLogger(__name__),
        f"wrote {len(records)} records to {table_path}",
        stage="export",
        event="TABLE_WRITTEN",
        status="partial" if failures else "ok",
        rows_out=len(records),
    )
    return len(failures)


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)

    try:
        settings = load_run_settings(args)
        if args.command == "harvest":
            # fail before any network activity when the credential is missing
            get_token(settings.token_env_var)
    except ConfigError as exc:
        log_event(
            logger,
            f"configuration error: {exc}",
            level=logging.ERROR,
            stage=args.command,
            event="CONFIG_ERROR",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL

    log_event(logger, "stage start", stage=args.command, event="STAGE_START", status="ok")
    if args.command == "export":
        failure_count = export_command(settings, data_dir)
    else:
        try:
            failure_count = asyncio.run(harvest_command(settings, data_dir, run_id))
        except PipelineError as exc:
            log_event(
                logger,
                f"harvest aborted: {exc}",
                level=logging.ERROR,
                stage=args.command,
                event="STAGE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return EXIT_HARD_FAIL
    log_event(logger, "stage end", stage=args.command, event="STAGE_END", status="ok")

    if failure_count and args.strict:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
