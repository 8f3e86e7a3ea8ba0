"""Core pipeline logic: load survey records and derive chart summaries.

This module orchestrates the two steps that precede rendering:

* Loading the student survey CSV (a local path or an http(s) URL) into a
  typed records frame.
* Aggregating those records into a flow graph and two group-average
  series via :mod:`student_viz.aggregate`.

The primary entry point is :func:`run_pipeline`, which returns a payload
dictionary consumed by the plotting helpers, the Shiny page and the
command line.  Any problem reading the source surfaces as a single
:class:`DataLoadError`; nothing is rendered from a partial load.
"""

from __future__ import annotations

from .aggregate import ensure_columns, summarize
from .config import (
    CATEGORICAL_COLUMNS,
    DATA_SOURCE,
    DEFAULT_SEP,
    DEFAULT_VIEWPORT,
    HTTP_TIMEOUT,
    MISSING_LABEL,
    NUMERIC_COLUMNS,
    REQUIRED_COLUMNS,
)

import argparse
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional

import logging
import pandas as pd
import requests

# Module‑level logger
logger = logging.getLogger(__name__)


# Whole numbers at or beyond this magnitude stay float
INT64_LIMIT: float = float(2**63)


class DataLoadError(RuntimeError):
    """The survey file is missing, unreadable or malformed."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_source(source: str | Path) -> BytesIO | Path:
    """
    Return a file-like object (for URLs) or Path (for local files).
    """
    source_str = str(source)
    if source_str.lower().startswith(("http://", "https://")):
        response = requests.get(source_str, timeout=HTTP_TIMEOUT)
        response.raise_for_status()
        return BytesIO(response.content)

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Survey data not found at {path}")
    return path


def coerce_numeric(series: pd.Series) -> pd.Series:
    """Convert a column to numbers; junk becomes missing.

    Columns holding only whole numbers within the int64 range come back as
    nullable ``Int64`` so group keys stay integers even when some cells are
    blank.  Infinite values become missing.
    """
    numeric = pd.to_numeric(series, errors="coerce")
    # Infinite values are junk too
    numeric = numeric.mask(numeric.isin([float("inf"), float("-inf")]))
    present = numeric.dropna()
    if present.empty:
        return numeric.astype("Int64")
    fits_int64 = (present.abs() < INT64_LIMIT).all()
    if fits_int64 and (present == present.round()).all():
        return numeric.astype("Int64")
    return numeric


def prepare_records(
    raw: pd.DataFrame, required: Optional[List[str]] = None
) -> pd.DataFrame:
    """Type the raw survey columns.

    * Check the required columns exist.
    * Coerce ``age``, ``Walc``, ``G3`` and ``absences`` to numbers.
    * Keep ``schoolsup``, ``famsup`` and ``higher`` as the raw strings read
      from the file, writing :data:`~student_viz.config.MISSING_LABEL` only
      where a row has no cell at all.

    Other columns pass through untouched.
    """
    ensure_columns(raw, required or REQUIRED_COLUMNS)
    df = raw.copy()
    for col in NUMERIC_COLUMNS:
        df[col] = coerce_numeric(df[col])
    for col in CATEGORICAL_COLUMNS:
        df[col] = df[col].astype(object).where(df[col].notna(), MISSING_LABEL)
        df[col] = df[col].astype(str)
    return df


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------


def load_records(
    source: str | Path = DATA_SOURCE, sep: str = DEFAULT_SEP
) -> pd.DataFrame:
    """Load the student survey CSV into a typed records frame.

    Parameters
    ----------
    source : str or Path
        Path or URL to the survey CSV.
    sep : str, optional
        Column delimiter; defaults to `","`.

    Returns
    -------
    pd.DataFrame
        One row per student, see :func:`prepare_records`.

    Raises
    ------
    DataLoadError
        If the source cannot be fetched, parsed, or lacks required columns.
    """
    try:
        # Tokens like "NA" or "null" are real category values, not missing
        raw = pd.read_csv(
            _resolve_source(source),
            sep=sep,
            keep_default_na=False,
            dtype={col: str for col in CATEGORICAL_COLUMNS},
        )
        records = prepare_records(raw)
    except (
        OSError,
        requests.RequestException,
        pd.errors.ParserError,
        pd.errors.EmptyDataError,
        ValueError,
        OverflowError,
        KeyError,
    ) as exc:
        logger.exception("Failed to load survey data from %s", source)
        raise DataLoadError(f"Could not load survey data from {source}: {exc}") from exc

    logger.info("Loaded %d survey records from %s", len(records), source)
    return records


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def run_pipeline(
    *,
    source: str | Path = DATA_SOURCE,
    sep: str = DEFAULT_SEP,
) -> Dict[str, object]:
    """Run the full data pipeline and return records plus summaries.

    Parameters
    ----------
    source : str or Path, optional
        Location of the survey CSV.  Defaults to ``config.DATA_SOURCE``.
    sep : str, optional
        Column delimiter.  Defaults to ",".

    Returns
    -------
    Dict[str, object]
        Keys ``"records"`` (the typed frame), ``"flow"`` (a
        :class:`~student_viz.aggregate.FlowGraph`), ``"age_walc"`` and
        ``"absences_walc"`` (group-average frames).
    """
    records = load_records(source, sep=sep)
    summary = summarize(records)
    logger.info(
        "Aggregated %d records: %d flow nodes, %d ages, %d absence counts",
        len(records),
        len(summary["flow"].nodes),
        len(summary["age_walc"]),
        len(summary["absences_walc"]),
    )
    return {"records": records, **summary}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Summarize the student survey (support flows and weekend alcohol "
            "use by age and absences) and optionally export the charts."
        )
    )
    parser.add_argument(
        "--source",
        default=DATA_SOURCE,
        help=f"Path or URL to the survey CSV (default: {DATA_SOURCE}).",
    )
    parser.add_argument(
        "--sep",
        default=DEFAULT_SEP,
        help=f"Delimiter used in the source file (default: '{DEFAULT_SEP}').",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=DEFAULT_VIEWPORT[0],
        help="Canvas width in pixels for the exported dashboard.",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=DEFAULT_VIEWPORT[1],
        help="Canvas height in pixels for the exported dashboard.",
    )
    parser.add_argument(
        "--html",
        default=None,
        help="Write the dashboard as a standalone HTML file to this path.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    args = parse_args(argv)
    try:
        payload = run_pipeline(source=args.source, sep=args.sep)
    except DataLoadError:
        # Already logged with traceback by load_records
        return 1

    flow = payload["flow"]
    print("\n--- STUDENT SURVEY SUMMARY ---")
    print(
        f"Records: {len(payload['records'])} | Flow nodes: {len(flow.nodes)} | "
        f"Flow links: {len(flow.links)} | Total flow: {flow.total_flow}"
    )
    print("\nSupport flows:")
    print(flow.labelled_links.to_string(index=False))
    print("\nAvg Walc by age:")
    print(payload["age_walc"].to_string(index=False))
    print("\nAvg Walc by absences:")
    print(payload["absences_walc"].to_string(index=False))

    if args.html:
        from .config import ChartLayout
        from .plotting import create_dashboard_figure

        layout = ChartLayout.from_viewport(args.width, args.height)
        fig = create_dashboard_figure(payload, layout)
        out_path = Path(args.html)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fig.write_html(out_path, include_plotlyjs="cdn")
        print(f"\nSaved dashboard to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
