"""
Interface for tracing important events of a search request, which can be used for extracting
performance information

Currently, the export is handled just by logging, assuming to be parsed later. We log at debug
level since this is assumed to be high level tracing
"""

import logging
from enum import Enum
from functools import wraps
from time import perf_counter_ns
from typing import Any, Callable, TypeVar

d: dict[str, str] = {}

logger = logging.getLogger(__name__)


class SearchLifecycle(str, Enum):
    started = "search_started"
    stepping = "search_stepping"
    finished = "search_finished"
    retried = "search_retried"
    reported = "search_reported"
    cancelled = "search_cancelled"


class Microtrace(str, Enum):
    ctrl_start = "ctrl_start"
    ctrl_step = "ctrl_step"
    ctrl_finish = "ctrl_finish"


def _labels(labels: dict) -> str:
    return ";".join(f"{k}={v.value if isinstance(v, Enum) else v}" for k, v in labels.items())


def label(key: str, value: str) -> None:
    """Makes all subsequent marks contain this KV"""
    global d
    d[key] = value


def mark(labels: dict) -> None:
    at = perf_counter_ns()
    global d
    event = _labels({**d, **labels})
    logger.debug(f"{event};{at=}")


F = TypeVar("F", bound=Callable[..., Any])


def timer(f: F, kind: Microtrace) -> F:
    """Wraps f such that every invocation marks its duration under `kind`"""

    @wraps(f)
    def wrapper(*args, **kwargs):
        start = perf_counter_ns()
        try:
            return f(*args, **kwargs)
        finally:
            mark({"microtrace": kind, "took_ns": perf_counter_ns() - start})

    return wrapper  # type: ignore
