"""
Re-index Audit Tool

Compares the freshly re-indexed copy of an archive against the previously
indexed copy and reports per-document diagnostics, text statistics and
stale/new documents.

Usage:
    reindex-audit compare --archive ECCO
    reindex-audit compare --archive ECCO --mode fast
    reindex-audit compare --archive ECCO --include title,author
    reindex-audit compare --archive ECCO --ignore batch,date_updated --log-root ./logs
    reindex-audit compare --archive ECCO --pushgateway localhost:9091 --json
"""

import argparse
import json
import logging
import os
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from reindex_audit.config import CompareConfig, CompareMode, ConfigurationError, load_config
from reindex_audit.fetching.page_fetcher import FetchFailure, PageFetcher, ParseFailure
from reindex_audit.monitoring.metrics import AuditMetrics
from reindex_audit.monitoring.report import (
    COMPARE_LOGGER,
    SKIPPED_LOGGER,
    TEXT_LOGGER,
    DiagnosticReporter,
)
from reindex_audit.reconciliation.scanner import ArchiveScanner, ScanReport
from reindex_audit.utils.run_context import ScanRunContext, get_run_id, setup_run_logging
from reindex_audit.utils.vault_client import VaultClient

PACKAGE_LOGGER = "reindex_audit"

logger = logging.getLogger(__name__)

LOG_FILE_SUFFIXES = {
    COMPARE_LOGGER: "_compare.log",
    TEXT_LOGGER: "_compare_text.log",
    SKIPPED_LOGGER: "_skipped.log",
}


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with run ID support."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'run_id': getattr(record, 'run_id', None) or get_run_id() or "N/A",
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'archive'):
            log_data['archive'] = record.archive

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(verbose: bool = False, json_logging: Optional[bool] = None) -> logging.Logger:
    """
    Configure console logging for the package.

    Args:
        verbose: Log at DEBUG instead of INFO
        json_logging: Emit JSON lines; defaults to the JSON_LOGGING env var

    Returns:
        The configured package logger
    """
    if json_logging is None:
        json_logging = os.getenv('JSON_LOGGING', 'false').lower() == 'true'

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    package_logger.propagate = False

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if json_logging:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(run_id)s] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    setup_run_logging(handler)
    package_logger.addHandler(handler)

    return package_logger


def log_file_stem(archive: str) -> str:
    """File-name-safe form of an archive name."""
    return re.sub(r"[^\w.-]", "_", archive)


def attach_log_files(log_root: str, archive: str) -> List[logging.Handler]:
    """
    Add per-archive file handlers to the three report channels.

    Args:
        log_root: Directory for the log files (created if missing)
        archive: Archive being compared

    Returns:
        Handlers added, for detach_log_files
    """
    root = Path(log_root)
    root.mkdir(parents=True, exist_ok=True)
    stem = log_file_stem(archive)

    handlers = []
    for channel, suffix in LOG_FILE_SUFFIXES.items():
        handler = logging.FileHandler(root / f"{stem}{suffix}", mode="w", encoding="utf-8")
        handler.setFormatter(logging.Formatter('%(message)s'))
        handler.setLevel(logging.INFO)
        handler.channel = channel
        logging.getLogger(channel).addHandler(handler)
        handlers.append(handler)

    logger.info(f"Writing comparison logs for {archive} to {root}")
    return handlers


def detach_log_files(handlers: List[logging.Handler]) -> None:
    for handler in handlers:
        logging.getLogger(handler.channel).removeHandler(handler)
        handler.close()


def resolve_credentials(config: CompareConfig, vault_factory: Callable = VaultClient) -> None:
    """
    Fill index credentials from Vault when a secret path is configured.

    Raises:
        ValueError: If the secret lacks a username or password
        VaultError: If Vault cannot be reached
    """
    if not config.vault_secret_path:
        return

    with vault_factory() as vault:
        credentials = vault.get_index_credentials(config.vault_secret_path)

    config.username = credentials["username"]
    config.password = credentials["password"]


def run_compare(
    config: CompareConfig,
    metrics: Optional[AuditMetrics] = None,
    session=None,
    sleep: Callable[[float], None] = time.sleep,
    reporter: Optional[DiagnosticReporter] = None
) -> ScanReport:
    """
    Run one archive comparison.

    Args:
        config: Validated comparison settings
        metrics: Optional AuditMetrics
        session: Optional requests session for the fetcher
        sleep: Sleep function used between fetch attempts
        reporter: Reporter for the three channels

    Returns:
        ScanReport of the completed scan

    Raises:
        FetchFailure: If a page cannot be fetched
        ParseFailure: If a response body is malformed
    """
    fetcher = PageFetcher(
        config.base_url,
        max_attempts=config.max_attempts,
        retry_interval=config.retry_interval,
        timeout=config.request_timeout,
        auth=config.auth,
        session=session,
        sleep=sleep,
        metrics=metrics
    )

    scanner = ArchiveScanner(
        fetcher,
        reporter=reporter or DiagnosticReporter(),
        metrics=metrics,
        window_sizes=config.window_sizes,
        drain_baseline=config.drain_baseline
    )

    with fetcher:
        return scanner.scan(
            config.baseline_scope(),
            config.candidate_scope(),
            validate_required=config.validate_required,
            compare_text=config.includes_text
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reindex-audit",
        description="Metadata fidelity audit for re-indexed archives",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    compare_parser = subparsers.add_parser("compare", help="Compare one archive")
    compare_parser.add_argument("--archive", required=True, help="Archive name")
    compare_parser.add_argument(
        "--mode",
        choices=[m.value for m in CompareMode],
        default=None,
        help="full: all fields; fast: skip text; text: text fields only"
    )
    fields_group = compare_parser.add_mutually_exclusive_group()
    fields_group.add_argument("--include", help="Comma-separated fields to compare")
    fields_group.add_argument("--ignore", help="Comma-separated fields to skip")
    compare_parser.add_argument("--page-size", type=int, help="Records per page")
    compare_parser.add_argument("--base-url", help="Index service root URL")
    compare_parser.add_argument("--config", help="YAML config file")
    compare_parser.add_argument("--log-root", help="Directory for per-archive log files")
    compare_parser.add_argument("--vault-path", help="Vault secret path holding index credentials")
    compare_parser.add_argument(
        "--no-drain",
        action="store_true",
        help="Stop fetching baseline pages once the candidate is exhausted"
    )
    compare_parser.add_argument("--pushgateway", help="Prometheus Pushgateway address")
    compare_parser.add_argument("--json", action="store_true", help="Print the scan report as JSON")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(
            args.config,
            archive=args.archive,
            base_url=args.base_url,
            mode=args.mode,
            include_fields=args.include,
            ignore_fields=args.ignore,
            page_size=args.page_size,
            log_root=args.log_root,
            vault_secret_path=args.vault_path,
            drain_baseline=False if args.no_drain else None
        )
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        resolve_credentials(config)
    except Exception as e:
        logger.error(f"Could not read index credentials: {e}", exc_info=args.verbose)
        return 1

    metrics = AuditMetrics()
    handlers = attach_log_files(config.log_root, config.archive) if config.log_root else []

    with ScanRunContext(config.archive) as run_id:
        try:
            report = run_compare(config, metrics=metrics)
        except (FetchFailure, ParseFailure) as e:
            logger.error(f"Comparison of {config.archive} failed: {e}", exc_info=args.verbose)
            return 1
        except Exception as e:
            logger.error(f"Error: {e}", exc_info=args.verbose)
            return 1
        finally:
            detach_log_files(handlers)
            if args.pushgateway:
                try:
                    metrics.push(args.pushgateway, grouping_key={"archive": config.archive, "run_id": run_id})
                except Exception as e:
                    logger.warning(f"Metrics push skipped: {e}")

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))

    return 0


if __name__ == "__main__":
    sys.exit(main())
