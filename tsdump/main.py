"""Main entry point for the time-series dump tool."""
import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml

from tsdump.config import Config, load_config
from tsdump.emitter import SeriesEmitter
from tsdump.errors import TsDumpError
from tsdump.fetcher import TimeSeriesFetcher
from tsdump.flatten import flatten_series
from tsdump.request import TimeSeriesQuery

logger = logging.getLogger(__name__)


def setup_logging(log_level: str):
    """Setup logging configuration. Logs go to stderr, stdout carries data."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr
    )

    # Reduce noise from some libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


def dump_time_series(
    config: Config,
    fetcher: Optional[TimeSeriesFetcher] = None,
    emitter: Optional[SeriesEmitter] = None,
    now: Optional[float] = None
) -> int:
    """
    Fetch, flatten and print every series matching the configured query.

    The first error aborts the run; lines already written stay written.

    Returns:
        Number of series emitted
    """
    query = TimeSeriesQuery.from_config(config.query, now)
    fetcher = fetcher or TimeSeriesFetcher(timeout=config.query.timeout_s)
    emitter = emitter or SeriesEmitter()

    logger.info(
        f"Querying {query.project_name} for metric {query.metric_type!r} "
        f"on resource {query.resource_type!r} in [{query.start}, {query.end}]"
    )

    with fetcher:
        for series in fetcher.list_time_series(query):
            emitter.emit(flatten_series(series))

    return emitter.emitted


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dump Cloud Monitoring time series as JSON, one series per line"
    )
    # Go-style single-dash spellings are accepted too.
    parser.add_argument("--project", "-project", dest="project", help="GCP project")
    parser.add_argument("--metricType", "-metricType", dest="metric_type", help="Type of metric")
    parser.add_argument("--resourceType", "-resourceType", dest="resource_type", help="Type of resource")
    parser.add_argument("--start", "-start", dest="start", type=int, help="Start time (unix time), default now-10m")
    parser.add_argument("--end", "-end", dest="end", type=int, help="End time (unix time), default now")
    parser.add_argument("--timeout", "-timeout", dest="timeout_s", type=float, help="Per-call deadline in seconds")
    parser.add_argument("--config", "-c", dest="config", help="Path to configuration YAML file")
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default INFO)")
    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    """Collect the flags that were actually given, grouped by config section."""
    query = {
        name: getattr(args, name)
        for name in ("project", "metric_type", "resource_type", "start", "end", "timeout_s")
        if getattr(args, name) is not None
    }
    overrides: Dict[str, Dict[str, Any]] = {"query": query}
    if args.log_level is not None:
        overrides["global"] = {"log_level": args.log_level}
    return overrides


def main(argv: Optional[List[str]] = None):
    """Main function."""
    args = build_parser().parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config, overrides=cli_overrides(args))
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.global_.log_level)

    try:
        count = dump_time_series(config)
    except TsDumpError as e:
        logger.error(f"{e}")
        sys.exit(1)

    logger.info(f"Emitted {count} time series")


if __name__ == "__main__":
    main()
