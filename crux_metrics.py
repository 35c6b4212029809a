import math
from typing import Dict, Optional, Tuple

METRIC_NAMES = ("lcp", "fid", "cls", "fcp", "ttfb", "inp")

# metric -> (good upper bound, needs-improvement upper bound)
METRIC_THRESHOLDS: Dict[str, Tuple[float, float]] = {
    "lcp": (2500, 4000),
    "fid": (100, 300),
    "cls": (0.1, 0.25),
    "fcp": (1800, 3000),
    "ttfb": (800, 1800),
    "inp": (200, 500),
}

METRIC_DESCRIPTIONS = {
    "lcp": "Largest Contentful Paint - measures loading performance",
    "fid": "First Input Delay - measures interactivity",
    "cls": "Cumulative Layout Shift - measures visual stability",
    "fcp": "First Contentful Paint - measures when the first content is painted",
    "ttfb": "Time to First Byte - measures time until the first byte of the page is received",
    "inp": "Interaction to Next Paint - measures responsiveness",
}

UNITLESS_METRICS = {"cls"}

GOOD = "good"
NEEDS_IMPROVEMENT = "needs-improvement"
POOR = "poor"
UNKNOWN = "unknown"

RATING_COLORS = {
    GOOD: "#3CBC64",
    NEEDS_IMPROVEMENT: "#FFF176",
    POOR: "#F44336",
}

MISSING = "-"


def _key(metric) -> str:
    if not isinstance(metric, str):
        return ""
    return metric.strip().lower()


def _as_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(num):
        return None
    return num


def rate_metric(metric, value) -> str:
    """Classify a metric value as good / needs-improvement / poor.

    Lower bounds are inclusive: a value sitting exactly on the "good"
    threshold is still good. Anything that cannot be rated is "unknown".
    """
    thresholds = METRIC_THRESHOLDS.get(_key(metric))
    num = _as_number(value)
    if thresholds is None or num is None:
        return UNKNOWN
    good, poor = thresholds
    if num <= good:
        return GOOD
    if num <= poor:
        return NEEDS_IMPROVEMENT
    return POOR


def describe_metric(metric) -> str:
    if not isinstance(metric, str):
        return ""
    return METRIC_DESCRIPTIONS.get(_key(metric), metric)


def metric_label(metric) -> str:
    return _key(metric).upper() or MISSING


def format_metric(metric, value) -> str:
    """Render a metric value for a table cell."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return MISSING
    key = _key(metric)
    num = _as_number(value)
    if key not in METRIC_THRESHOLDS or num is None:
        return str(value)
    if key in UNITLESS_METRICS:
        return f"{num:.3f}"
    if math.isinf(num):
        return f"{num} ms"
    # Half up like Math.round, so 2500.5 renders as 2501 rather than round()'s 2500
    return f"{int(math.floor(num + 0.5))} ms"


def rating_color(rating: str) -> str:
    if rating not in RATING_COLORS:
        return "#999"
    return RATING_COLORS[rating]


def _format_date(date_obj) -> Optional[str]:
    if not isinstance(date_obj, dict):
        return None
    try:
        return f"{int(date_obj['year'])}-{int(date_obj['month']):02d}-{int(date_obj['day']):02d}"
    except (KeyError, TypeError, ValueError):
        return None


def format_collection_period(period) -> str:
    """Render a CrUX collection period as "first - last"."""
    if period is None:
        return MISSING
    first = _format_date(getattr(period, "first_date", None))
    last = _format_date(getattr(period, "last_date", None))
    if not first and not last:
        return MISSING
    return f"{first or '?'} - {last or '?'}"
