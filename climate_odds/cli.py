"""
Command line runner: historical likelihood for one calendar day and place.

Prints hour-of-day, time-of-day band and whole-day means over the history
window, and optionally writes the per-year hourly table as CSV.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .aggregation import HistoryAggregator, frequency_distribution, hour_samples
from .clients.base import ConfigurationError
from .core.config import ConfigError
from .core.dates import DEFAULT_HISTORY_YEARS, default_year_range
from .core.models import HOURS_PER_DAY, AggregateSummary, CalendarDay, DailyRecord, GeoPoint, Sample, ScalarSummary
from .exporters import TableExporter

logger = logging.getLogger(__name__)

LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "likelihood.log"

UNITS = {
    "temperature": "C",
    "wind_speed": "m/s",
    "precipitation": "mm",
}

POWER_LABELS = {
    "T2M": ("Temperature", "C"),
    "PRECTOTCORR": ("Rain", "mm"),
    "WS10M": ("Wind", "m/s"),
    "SNODP": ("Snow", "cm"),
}


def configure_logging(log_file: Path = LOG_FILE, level: int = logging.INFO) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(),
        ],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Historical weather likelihood for a calendar day")
    parser.add_argument("--date", required=True, help="Calendar day as MM/DD")
    parser.add_argument("--lat", type=float, required=True, help="Latitude in decimal degrees")
    parser.add_argument("--lon", type=float, required=True, help="Longitude in decimal degrees")
    parser.add_argument("--years", type=int, default=None, help=f"History length in years (default {DEFAULT_HISTORY_YEARS})")
    parser.add_argument("--config", type=str, default="config.json", help="Path to config.json")
    parser.add_argument("--csv", type=str, default=None, help="Write the hourly table to this CSV path")
    parser.add_argument("--simple", action="store_true", help="Daily NASA POWER summary only (no hourly data)")
    parser.add_argument("--hour", type=int, default=None, help="Also print per-year values and their distribution at this UTC hour (0-23)")
    parser.add_argument("--bin-width", type=float, default=0.5, help="Bucket width for --hour distributions (default 0.5)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def _fmt(value: Sample, unit: str) -> str:
    return "N/A" if value is None else f"{value:.2f} {unit}"


def render_summary(summary: AggregateSummary) -> str:
    lines: List[str] = []
    lines.append(f"Years with data: {len(summary.years)}")
    if summary.failed_years:
        lines.append(f"Years without data: {', '.join(str(year) for year in summary.failed_years)}")

    for variable, unit in UNITS.items():
        lines.append("")
        lines.append(variable.replace("_", " ").title())
        for name, value in summary.bands[variable].items():
            lines.append(f"  {name:<10} {_fmt(value, unit)}")
        lines.append(f"  {'day':<10} {_fmt(summary.overall[variable], unit)}")
        for hour, value in enumerate(summary.hourly[variable]):
            lines.append(f"  {hour:02d}:00      {_fmt(value, unit)}")

    lines.append("")
    lines.append(f"Snow depth {_fmt(summary.snow_depth, 'cm')}")
    return "\n".join(lines)


def render_hour_distribution(records: Sequence[DailyRecord], hour: int, bin_width: float = 0.5) -> str:
    """Per-year readings at ``hour`` and how often each value bucket occurred."""
    lines: List[str] = [f"Distribution at {hour:02d}:00 UTC"]
    for variable, unit in UNITS.items():
        samples = hour_samples(records, variable, hour)
        lines.append("")
        lines.append(f"{variable.replace('_', ' ').title()} ({len(samples)} years)")
        for year, value in samples.items():
            lines.append(f"  {year}  {_fmt(value, unit)}")
        for bucket, count in frequency_distribution(samples.values(), bin_width):
            lines.append(f"  [{bucket:g}, {bucket + bin_width:g})  {count}")
    return "\n".join(lines)


def render_scalar_summary(summary: ScalarSummary) -> str:
    lines: List[str] = []
    for param, mean in summary.means.items():
        label, unit = POWER_LABELS.get(param, (param, ""))
        count = len(summary.values.get(param, {}))
        lines.append(f"{label:<12} {_fmt(mean, unit)}  ({count} years)")
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        calendar_day = CalendarDay.parse(args.date)
        location = GeoPoint(args.lat, args.lon)
        year_range = default_year_range(span=args.years) if args.years is not None else None
        if args.hour is not None and not 0 <= args.hour < HOURS_PER_DAY:
            raise ValueError(f"--hour must be 0-{HOURS_PER_DAY - 1}, got {args.hour}.")
        if args.bin_width <= 0:
            raise ValueError("--bin-width must be positive.")
        aggregator = HistoryAggregator(config_path=args.config)
    except (ConfigError, ValueError) as exc:
        logger.error(f"Invalid input: {exc}")
        return 1

    try:
        if args.simple:
            print(render_scalar_summary(aggregator.fetch_daily_summary(calendar_day, location, year_range)))
            return 0

        summary = aggregator.fetch_daily_history(calendar_day, location, year_range)
    except ConfigurationError as exc:
        logger.error(f"Configuration error: {exc}")
        return 1

    print(render_summary(summary))
    if args.hour is not None:
        print()
        print(render_hour_distribution(aggregator.records, args.hour, args.bin_width))

    if args.csv:
        target = Path(args.csv)
        TableExporter(target.parent).save(target.name, aggregator.records, aggregator.snow_depth)
    return 0


if __name__ == "__main__":
    sys.exit(main())
