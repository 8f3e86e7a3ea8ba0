import logging

from shiny.express import ui
from shinywidgets import render_plotly

from student_viz.config import DEFAULT_LAYOUT
from student_viz.data_manager import load_payload
from student_viz.pipeline import DataLoadError
from student_viz.plotting import create_dashboard_figure

logger = logging.getLogger(__name__)

# ======================================================
#  DATA
# ======================================================
# Load once on startup; a failed load leaves the page without a chart.
try:
    payload = load_payload()
except DataLoadError:
    logger.error("Survey data unavailable; dashboard not rendered.")
    payload = None


# ======================================================
#  UI LAYOUT
# ======================================================
ui.page_opts(
    title="Student Alcohol Consumption",
    fillable=False,
    full_width=True,
    lang="en",
)

with ui.div(style="display:flex; justify-content:center;"):

    @render_plotly
    def dashboard_plot():
        if payload is None:
            return None
        return create_dashboard_figure(payload, DEFAULT_LAYOUT)
