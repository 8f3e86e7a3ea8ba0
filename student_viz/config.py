"""
Configuration constants for the student survey visualization.
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
DATA_SOURCE: str = os.getenv("STUDENT_DATA_SOURCE", "student-mat.csv")

DEFAULT_SEP: str = ","

# Seconds to wait when the source is an http(s) URL
HTTP_TIMEOUT: int = 30

NUMERIC_COLUMNS: List[str] = ["age", "Walc", "G3", "absences"]
CATEGORICAL_COLUMNS: List[str] = ["schoolsup", "famsup", "higher"]
REQUIRED_COLUMNS: List[str] = NUMERIC_COLUMNS + CATEGORICAL_COLUMNS

# Stand-in for an absent categorical value; it becomes its own node label
MISSING_LABEL: str = "undefined"

# ======================================================
#  FLOW GRAPH LABELS
# ======================================================
# Order matters: each record emits one link per source field, in this order.
FLOW_SOURCES: List[Tuple[str, str]] = [
    ("schoolsup", "School Support"),
    ("famsup", "Family Support"),
]
FLOW_TARGET: Tuple[str, str] = ("higher", "Pursue Higher Education?")

# ======================================================
#  CHART STYLING
# ======================================================
NODE_COLOR: str = "#888"
LINK_COLOR: str = "rgba(0, 0, 0, 0.3)"
LINE_COLOR: str = "steelblue"
LINE_WIDTH: float = 1.5
BAR_COLOR: str = "#f77f00"

AXIS_TITLES: Dict[str, Tuple[str, str]] = {
    "age": ("Age", "Avg Weekend Alcohol Use (Walc)"),
    "absences": ("Absences", "Avg Weekend Alcohol Use"),
}

LINE_X_TICKS: int = 6
Y_TICKS: int = 5

DEFAULT_VIEWPORT: Tuple[int, int] = (1280, 800)


# ======================================================
#  LAYOUT
# ======================================================
@dataclass(frozen=True)
class ChartLayout:
    """Pixel placement of the three charts on one canvas.

    Positions left as ``None`` are derived from ``width`` and ``height``;
    every renderer takes one of these instead of reading global dimensions.
    """

    width: int
    height: int
    sankey_left: float = 50
    sankey_top: float = 40
    sankey_width: Optional[float] = None
    sankey_height: Optional[float] = None
    mini_width: float = 300
    mini_height: float = 200
    line_x: Optional[float] = None
    line_y: float = 60
    bar_x: Optional[float] = None
    bar_y: Optional[float] = None
    margin_top: float = 10
    margin_right: float = 30
    margin_bottom: float = 40
    margin_left: float = 60
    node_width: float = 20
    node_padding: float = 15

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Viewport must be positive, got {self.width}x{self.height}."
            )

        line_x = self.width - self.mini_width - 60
        derived = {
            "sankey_width": self.width * 0.45,
            "sankey_height": self.height * 0.6,
            "line_x": line_x,
            "bar_x": line_x if self.line_x is None else self.line_x,
            "bar_y": self.line_y + self.mini_height + 60,
        }
        for name, value in derived.items():
            if getattr(self, name) is None:
                object.__setattr__(self, name, value)

    @classmethod
    def from_viewport(
        cls,
        width: int,
        height: int,
        *,
        mini_width: float = 300,
        mini_height: float = 200,
    ) -> "ChartLayout":
        """Derive chart positions from the viewport size."""
        return cls(
            width=width,
            height=height,
            mini_width=mini_width,
            mini_height=mini_height,
        )

    def x_domain(self, left: float, span: float) -> List[float]:
        """Convert a horizontal pixel span to a paper-relative domain."""
        return [_clamp(left / self.width), _clamp((left + span) / self.width)]

    def y_domain(self, top: float, span: float) -> List[float]:
        """Convert a vertical pixel span (top-down) to a bottom-up domain."""
        return [
            _clamp(1 - (top + span) / self.height),
            _clamp(1 - top / self.height),
        ]


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


DEFAULT_LAYOUT: ChartLayout = ChartLayout.from_viewport(*DEFAULT_VIEWPORT)
