from typing import Dict, List, Protocol

import pandas as pd
import plotly.graph_objects as go

from .aggregate import FlowGraph
from .config import (
    AXIS_TITLES,
    BAR_COLOR,
    DEFAULT_LAYOUT,
    LINE_COLOR,
    LINE_WIDTH,
    LINE_X_TICKS,
    LINK_COLOR,
    NODE_COLOR,
    Y_TICKS,
    ChartLayout,
)


# ============================================================
# Configuration / constants
# ============================================================

HOVER_TEMPLATE_LINE = (
    "Age: %{x}<br>"
    "Avg Weekend Alcohol Use: %{y:.2f}<extra></extra>"
)

HOVER_TEMPLATE_BAR = (
    "Absences: %{x}<br>"
    "Avg Weekend Alcohol Use: %{y:.2f}<extra></extra>"
)

HOVER_TEMPLATE_LINK = (
    "%{source.label} → %{target.label}<br>"
    "Students: %{value:,}<extra></extra>"
)


# ============================================================
# Flow layout engines
# ============================================================


class FlowLayoutEngine(Protocol):
    """Turns nodes plus weighted links into a positioned flow trace."""

    def build_trace(
        self,
        graph: FlowGraph,
        *,
        domain: Dict[str, List[float]],
        node_width: float,
        node_padding: float,
    ) -> go.Sankey: ...


class PlotlySankeyLayout:
    """Delegate node placement and link curves to plotly's Sankey trace."""

    def __init__(self, arrangement: str = "snap") -> None:
        self.arrangement = arrangement

    def build_trace(
        self,
        graph: FlowGraph,
        *,
        domain: Dict[str, List[float]],
        node_width: float,
        node_padding: float,
    ) -> go.Sankey:
        return go.Sankey(
            arrangement=self.arrangement,
            domain=domain,
            node=dict(
                label=list(graph.nodes),
                color=NODE_COLOR,
                thickness=node_width,
                pad=node_padding,
                line=dict(width=0),
            ),
            link=dict(
                source=graph.links["source"].tolist(),
                target=graph.links["target"].tolist(),
                value=graph.links["value"].tolist(),
                color=LINK_COLOR,
                hovertemplate=HOVER_TEMPLATE_LINK,
            ),
        )


DEFAULT_FLOW_ENGINE: FlowLayoutEngine = PlotlySankeyLayout()


# ============================================================
# Helper functions
# ============================================================


def _key_column(averages: pd.DataFrame) -> str:
    """
    Return the grouping column of a group-average frame.
    """
    keys = [c for c in averages.columns if c != "mean"]
    if len(keys) != 1 or "mean" not in averages.columns:
        raise KeyError(
            f"Expected one key column plus 'mean', got {list(averages.columns)}"
        )
    return keys[0]


def _line_trace(averages: pd.DataFrame, key_col: str) -> go.Scatter:
    return go.Scatter(
        x=averages[key_col].tolist(),
        y=averages["mean"].tolist(),
        mode="lines",
        line=dict(color=LINE_COLOR, width=LINE_WIDTH),
        hovertemplate=HOVER_TEMPLATE_LINE,
        showlegend=False,
    )


def _bar_trace(averages: pd.DataFrame, key_col: str) -> go.Bar:
    return go.Bar(
        x=[str(k) for k in averages[key_col]],
        y=averages["mean"].tolist(),
        marker=dict(color=BAR_COLOR),
        hovertemplate=HOVER_TEMPLATE_BAR,
        showlegend=False,
    )


def _line_axes(key_col: str) -> tuple[dict, dict]:
    x_title, y_title = AXIS_TITLES.get(key_col, (key_col, "Mean"))
    xaxis = dict(title_text=x_title, nticks=LINE_X_TICKS, showgrid=False)
    yaxis = dict(
        title_text=y_title,
        nticks=Y_TICKS,
        rangemode="tozero",
        showline=False,
        gridcolor="rgba(0, 0, 0, 0.1)",
    )
    return xaxis, yaxis


def _bar_axes(averages: pd.DataFrame, key_col: str) -> tuple[dict, dict]:
    x_title, y_title = AXIS_TITLES.get(key_col, (key_col, "Mean"))
    categories = [str(k) for k in averages[key_col]]
    xaxis = dict(
        title_text=x_title,
        type="category",
        categoryorder="array",
        categoryarray=categories,
        # Label every other band to keep dense counts readable
        tickmode="array",
        tickvals=categories[::2],
        showgrid=False,
    )
    yaxis = dict(title_text=y_title, nticks=Y_TICKS, rangemode="tozero")
    return xaxis, yaxis


def _mini_margin(layout: ChartLayout) -> dict:
    return dict(
        t=layout.margin_top,
        r=layout.margin_right,
        b=layout.margin_bottom,
        l=layout.margin_left,
    )


# ============================================================
# Main plotting functions
# ============================================================


def create_flow_figure(
    graph: FlowGraph,
    layout: ChartLayout = DEFAULT_LAYOUT,
    *,
    engine: FlowLayoutEngine = DEFAULT_FLOW_ENGINE,
) -> go.Figure:
    """
    Draw the support → higher-education flow diagram on its own.

    Parameters
    ----------
    graph : FlowGraph
        Nodes and weighted links from ``aggregate.build_flow_graph``.
    layout : ChartLayout
        Supplies the diagram size, node width and node padding.
    engine : FlowLayoutEngine
        Layout capability producing the positioned trace.

    Returns
    -------
    go.Figure
    """
    trace = engine.build_trace(
        graph,
        domain=dict(x=[0, 1], y=[0, 1]),
        node_width=layout.node_width,
        node_padding=layout.node_padding,
    )
    fig = go.Figure(data=[trace])
    fig.update_layout(
        width=layout.sankey_width,
        height=layout.sankey_height,
        margin=dict(t=10, l=10, r=10, b=10),
        font=dict(size=11),
    )
    return fig


def create_line_figure(
    averages: pd.DataFrame,
    layout: ChartLayout = DEFAULT_LAYOUT,
) -> go.Figure:
    """
    Line chart of a group-average series (mean Walc by age by default).
    """
    key_col = _key_column(averages)
    fig = go.Figure(data=[_line_trace(averages, key_col)])
    xaxis, yaxis = _line_axes(key_col)
    fig.update_layout(
        width=layout.mini_width,
        height=layout.mini_height,
        margin=_mini_margin(layout),
        xaxis=xaxis,
        yaxis=yaxis,
        plot_bgcolor="white",
    )
    return fig


def create_bar_figure(
    averages: pd.DataFrame,
    layout: ChartLayout = DEFAULT_LAYOUT,
) -> go.Figure:
    """
    Bar chart of a group-average series (mean Walc by absences by default).
    """
    key_col = _key_column(averages)
    fig = go.Figure(data=[_bar_trace(averages, key_col)])
    xaxis, yaxis = _bar_axes(averages, key_col)
    fig.update_layout(
        width=layout.mini_width,
        height=layout.mini_height,
        margin=_mini_margin(layout),
        xaxis=xaxis,
        yaxis=yaxis,
        bargap=0.3,
        plot_bgcolor="white",
    )
    return fig


def create_dashboard_figure(
    summary: Dict[str, object],
    layout: ChartLayout = DEFAULT_LAYOUT,
    *,
    engine: FlowLayoutEngine = DEFAULT_FLOW_ENGINE,
) -> go.Figure:
    """
    Place all three charts on one canvas.

    The flow diagram sits on the left; the line chart and the bar chart
    stack on the right, at the pixel positions given by ``layout``.

    Parameters
    ----------
    summary : dict
        Needs ``"flow"``, ``"age_walc"`` and ``"absences_walc"`` as returned
        by ``pipeline.run_pipeline`` or ``aggregate.summarize``.
    layout : ChartLayout
        Canvas size and chart placement.
    engine : FlowLayoutEngine
        Layout capability for the flow diagram.

    Returns
    -------
    go.Figure
    """
    graph: FlowGraph = summary["flow"]  # type: ignore[assignment]
    age_walc: pd.DataFrame = summary["age_walc"]  # type: ignore[assignment]
    absences_walc: pd.DataFrame = summary["absences_walc"]  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # 1. Flow diagram
    # ------------------------------------------------------------------
    sankey = engine.build_trace(
        graph,
        domain=dict(
            x=layout.x_domain(layout.sankey_left, layout.sankey_width),
            y=layout.y_domain(layout.sankey_top, layout.sankey_height),
        ),
        node_width=layout.node_width,
        node_padding=layout.node_padding,
    )

    # ------------------------------------------------------------------
    # 2. Line and bar traces on their own axes
    # ------------------------------------------------------------------
    age_key = _key_column(age_walc)
    abs_key = _key_column(absences_walc)

    line = _line_trace(age_walc, age_key)
    bar = _bar_trace(absences_walc, abs_key)
    bar.update(xaxis="x2", yaxis="y2")

    fig = go.Figure(data=[sankey, line, bar])

    # Plot areas sit inside the mini-chart box, inset by the margins
    line_x, line_y = _line_axes(age_key)
    line_x["domain"] = layout.x_domain(
        layout.line_x + layout.margin_left,
        layout.mini_width - layout.margin_left - layout.margin_right,
    )
    line_y["domain"] = layout.y_domain(
        layout.line_y + layout.margin_top,
        layout.mini_height - layout.margin_top - layout.margin_bottom,
    )
    line_x["anchor"] = "y"
    line_y["anchor"] = "x"

    bar_x, bar_y = _bar_axes(absences_walc, abs_key)
    bar_x["domain"] = layout.x_domain(layout.bar_x, layout.mini_width)
    bar_y["domain"] = layout.y_domain(layout.bar_y, layout.mini_height)
    bar_x["anchor"] = "y2"
    bar_y["anchor"] = "x2"

    # ------------------------------------------------------------------
    # 3. Global layout
    # ------------------------------------------------------------------
    fig.update_layout(
        width=layout.width,
        height=layout.height,
        margin=dict(t=0, l=0, r=0, b=0),
        xaxis=line_x,
        yaxis=line_y,
        xaxis2=bar_x,
        yaxis2=bar_y,
        bargap=0.3,
        plot_bgcolor="white",
        font=dict(size=11),
    )
    return fig
