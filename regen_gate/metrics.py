"""Prometheus instrumentation for the regeneration gate.

Every pipeline step (``checkout``, ``generate``, ``freshness``, ``lint``,
``build-static`` and so on) is timed and counted under its step name. The
freshness gate additionally counts its verdicts, so a dashboard can tell
branches that lag upstream apart from pull requests that skipped
``gen-proto``.
"""

from prometheus_client import Counter, Histogram, start_http_server
import functools
import time

__all__ = [
    "STEP_LATENCY",
    "STEP_SUCCESS",
    "STEP_FAILURE",
    "FRESHNESS_CHECKS",
    "start_metrics_server",
    "track_step",
]

# The ``step`` label holds the pipeline step name as shown by ``regen-gate run``.
STEP_LATENCY = Histogram(
    "step_latency_seconds",
    "Wall time of one pipeline step, from command start to exit",
    ["step"],
)

STEP_SUCCESS = Counter(
    "step_success_total",
    "Pipeline steps that completed without raising",
    ["step"],
)

# A stale-artifacts failure of the gate counts here as well as in FRESHNESS_CHECKS.
STEP_FAILURE = Counter(
    "step_failure_total",
    "Pipeline steps that raised, including non-zero command exits",
    ["step"],
)

# ``verdict`` is a Verdict value: up-to-date, branch-out-of-date or regeneration-not-run.
FRESHNESS_CHECKS = Counter(
    "freshness_checks_total",
    "Verdicts of the generated-code freshness gate",
    ["verdict"],
)


def start_metrics_server(port: int = 8000) -> None:
    """Serve the step and verdict metrics on ``port`` for the rest of the run."""
    start_http_server(port)


def track_step(func=None, *, name: str | None = None):
    """Time and count the step callable ``func``.

    The step label defaults to the function name. The pipeline passes the
    step's own name, e.g. ``track_step(name="gen-proto")(step.run)``, so that
    the label matches the stage history.
    """

    def decorator(func):
        label = name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.monotonic()
            try:
                value = func(*args, **kwargs)
            except Exception:
                STEP_FAILURE.labels(label).inc()
                raise
            finally:
                STEP_LATENCY.labels(label).observe(time.monotonic() - started)
            STEP_SUCCESS.labels(label).inc()
            return value

        return wrapper

    return decorator if func is None else decorator(func)
