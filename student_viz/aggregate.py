"""Aggregations that turn survey records into chart-ready summaries.

Two shapes are produced:

* a flow graph (nodes plus weighted links) counting how students with a
  given school/family support answer relate to their plan to pursue
  higher education;
* group averages, the mean of one column per distinct value of another,
  sorted by the grouping key.

All functions take the records frame returned by
:func:`student_viz.pipeline.load_records` and never modify it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple, Union

import logging
import pandas as pd

from .config import FLOW_SOURCES, FLOW_TARGET, MISSING_LABEL

logger = logging.getLogger(__name__)

# A column name, or a function computing one value per record
ColumnSpec = Union[str, Callable[[pd.DataFrame], pd.Series]]

LINK_COLUMNS: List[str] = ["source", "target", "value"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def ensure_columns(df: pd.DataFrame, required: List[str]) -> None:
    """Raise an error if the DataFrame lacks any of the required columns."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")


def _label(prefix: str, series: pd.Series) -> pd.Series:
    values = series.astype(object).where(series.notna(), MISSING_LABEL)
    return prefix + ": " + values.astype(str)


def _resolve(records: pd.DataFrame, column: ColumnSpec) -> pd.Series:
    if callable(column):
        return pd.Series(column(records), index=records.index)
    ensure_columns(records, [column])
    return records[column]


# ---------------------------------------------------------------------------
# Flow graph
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class FlowGraph:
    """Nodes and weighted links of a flow diagram.

    ``links`` holds integer ``source``/``target`` positions into ``nodes``
    and the co-occurrence count in ``value``.
    """

    nodes: List[str] = field(default_factory=list)
    links: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=LINK_COLUMNS)
    )

    @property
    def labelled_links(self) -> pd.DataFrame:
        """Links with node labels in place of positions."""
        names = pd.Series(self.nodes, dtype=object)
        out = self.links.copy()
        out["source"] = out["source"].map(names)
        out["target"] = out["target"].map(names)
        return out

    @property
    def total_flow(self) -> int:
        return int(self.links["value"].sum()) if not self.links.empty else 0


def flow_link_counts(records: pd.DataFrame) -> pd.DataFrame:
    """Count (source label, target label) pairs over all records.

    Every record contributes one pair per configured source field, all
    sharing the record's target label.  Pairs keep first-seen order.
    """
    ensure_columns(records, [col for col, _ in FLOW_SOURCES] + [FLOW_TARGET[0]])

    target_col, target_prefix = FLOW_TARGET
    target = _label(target_prefix, records[target_col])

    # Interleave per record so first-seen order follows the rows
    pairs: List[Tuple[str, str]] = []
    source_labels = [_label(prefix, records[col]) for col, prefix in FLOW_SOURCES]
    for row_sources, tgt in zip(zip(*source_labels), target):
        for src in row_sources:
            pairs.append((src, tgt))

    if not pairs:
        return pd.DataFrame(columns=LINK_COLUMNS)

    counts: Dict[Tuple[str, str], int] = {}
    for pair in pairs:
        counts[pair] = counts.get(pair, 0) + 1

    return pd.DataFrame(
        [(src, tgt, n) for (src, tgt), n in counts.items()], columns=LINK_COLUMNS
    )


def build_flow_graph(records: pd.DataFrame) -> FlowGraph:
    """Build the support → higher-education flow graph.

    Parameters
    ----------
    records : pd.DataFrame
        Survey records with ``schoolsup``, ``famsup`` and ``higher``.

    Returns
    -------
    FlowGraph
        Deduplicated node labels (first-seen order) and links whose
        ``source``/``target`` index into the node list.  Raw values are not
        normalized, so ``"yes"``, ``"Yes"`` and a missing value become three
        different nodes.
    """
    counted = flow_link_counts(records)
    if counted.empty:
        return FlowGraph()

    nodes: List[str] = []
    index: Dict[str, int] = {}
    for src, tgt in zip(counted["source"], counted["target"]):
        for name in (src, tgt):
            if name not in index:
                index[name] = len(nodes)
                nodes.append(name)

    links = pd.DataFrame(
        {
            "source": counted["source"].map(index).astype(int),
            "target": counted["target"].map(index).astype(int),
            "value": counted["value"].astype(int),
        }
    )
    logger.debug("Flow graph: %d nodes, %d links", len(nodes), len(links))
    return FlowGraph(nodes=nodes, links=links)


# ---------------------------------------------------------------------------
# Group averages
# ---------------------------------------------------------------------------


def group_average(
    records: pd.DataFrame,
    key: ColumnSpec,
    value: ColumnSpec,
    *,
    key_name: str | None = None,
) -> pd.DataFrame:
    """Mean of ``value`` per distinct ``key``, sorted ascending by key.

    Parameters
    ----------
    records : pd.DataFrame
        Survey records.
    key, value : str or callable
        Column names, or functions returning one value per record.
    key_name : str, optional
        Name of the key column in the result.  Defaults to ``key`` when it is
        a column name, otherwise ``"key"``.

    Returns
    -------
    pd.DataFrame
        Columns ``[key_name, "mean"]``; one row per group, keys unique and
        strictly increasing.  Records with a missing key form no group.
    """
    if key_name is None:
        key_name = key if isinstance(key, str) else "key"

    keys = _resolve(records, key)
    values = pd.to_numeric(_resolve(records, value), errors="coerce")

    frame = pd.DataFrame({key_name: keys, "mean": values}).dropna(subset=[key_name])
    if frame.empty:
        return pd.DataFrame(columns=[key_name, "mean"])

    out = (
        frame.groupby(key_name, sort=True, as_index=False)["mean"]
        .mean()
        .sort_values(key_name, kind="mergesort")
        .reset_index(drop=True)
    )
    return out


def walc_by_age(records: pd.DataFrame) -> pd.DataFrame:
    """Mean weekend alcohol use per age."""
    return group_average(records, "age", "Walc")


def walc_by_absences(records: pd.DataFrame) -> pd.DataFrame:
    """Mean weekend alcohol use per absence count."""
    return group_average(records, "absences", "Walc")


def summarize(records: pd.DataFrame) -> Dict[str, object]:
    """Compute every summary the charts need."""
    return {
        "flow": build_flow_graph(records),
        "age_walc": walc_by_age(records),
        "absences_walc": walc_by_absences(records),
    }
