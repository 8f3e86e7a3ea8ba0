"""Data manager for loading and caching pipeline results.

The survey file is read and aggregated once per process; the Shiny page
and any other caller share that payload.  Loading happens through
:func:`pipeline.run_pipeline`, so failures arrive as
:class:`~student_viz.pipeline.DataLoadError` after being logged there.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict

from . import pipeline
from .config import DATA_SOURCE, DEFAULT_SEP

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def _compute_pipeline_payload(source: str, sep: str) -> Dict[str, object]:
    """Runs the load and aggregation for one source."""
    return pipeline.run_pipeline(source=source, sep=sep)


def load_payload(
    source: str | Path = DATA_SOURCE,
    sep: str = DEFAULT_SEP,
    force_reload: bool = False,
) -> Dict[str, object]:
    """
    Return the cached payload for ``source``, computing it on first use.

    Parameters
    ----------
    source : str or Path, optional
        Path or URL of the survey CSV.
    sep : str, optional
        Column delimiter.
    force_reload : bool, optional
        If ``True``, drop every cached payload and read the source again.

    Returns
    -------
    Dict[str, object]
        The payload produced by :func:`pipeline.run_pipeline`.  Failed loads
        are not cached.
    """
    if force_reload:
        _compute_pipeline_payload.cache_clear()

    key = str(source)
    hits_before = _compute_pipeline_payload.cache_info().hits
    payload = _compute_pipeline_payload(key, sep)
    if _compute_pipeline_payload.cache_info().hits > hits_before:
        logger.info("Reusing cached survey payload for %s", key)
    else:
        logger.info("Computed survey payload from %s", key)
    return payload
