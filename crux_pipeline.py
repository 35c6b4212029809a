"""Filter, sort, paginate and aggregate fetched CrUX results for display.

Everything here is a pure function of the result list and the current view
state. The result list itself is never modified; callers replace it
wholesale on every search.
"""

import math
import operator
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import pandas as pd

from crux_client import CruxResult
from crux_metrics import MISSING, format_collection_period, format_metric, metric_label, rate_metric

ALL_METRICS = "all"
URL_KEY = "url"

OPERATORS = {
    "gt": operator.gt,
    "lt": operator.lt,
    "eq": operator.eq,
    "gte": operator.ge,
    "lte": operator.le,
}

OPERATOR_LABELS = {
    "gt": ">",
    "lt": "<",
    "eq": "=",
    "gte": ">=",
    "lte": "<=",
}

SORT_DIRECTIONS = ("asc", "desc")

PAGE_SIZE_OPTIONS = (5, 10, 25)
DEFAULT_PAGE_SIZE = PAGE_SIZE_OPTIONS[0]

AGGREGATE_COLUMNS = ["Metric", "Average", "Sum", "Min", "Max"]


@dataclass
class FilterSpec:
    metric: str = ALL_METRICS
    operator: str = "gt"
    value: object = None


@dataclass
class SortSpec:
    key: Optional[str] = None
    direction: str = "asc"


@dataclass
class PageSpec:
    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass
class ViewState:
    filter: FilterSpec = field(default_factory=FilterSpec)
    sort: SortSpec = field(default_factory=SortSpec)
    page: PageSpec = field(default_factory=PageSpec)


@dataclass(frozen=True)
class MetricStats:
    sum: float
    avg: float
    min: float
    max: float


@dataclass(frozen=True)
class DerivedView:
    visible_rows: List[CruxResult]
    total_filtered_count: int
    aggregate: Dict[str, MetricStats]


def metric_columns(results: Sequence[CruxResult]) -> List[str]:
    """Union of metric names over all results, in first-seen order."""
    columns = []
    seen = set()
    for r in results:
        for name in r.metrics:
            if name not in seen:
                columns.append(name)
            seen.add(name)
    return columns


def _metrics_frame(results: Sequence[CruxResult], columns: List[str]) -> pd.DataFrame:
    return pd.DataFrame([dict(r.metrics) for r in results], columns=columns, dtype=float)


def _filter_value(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        num = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(num):
        return None
    return num


def filter_results(results: Sequence[CruxResult], spec: FilterSpec) -> List[CruxResult]:
    """Keep results whose metric satisfies the filter.

    Results that do not report the filtered metric never pass. An "all"
    metric, an unusable value or an unknown operator leaves the list as is.
    """
    threshold = _filter_value(spec.value)
    compare = OPERATORS.get(spec.operator)
    if not spec.metric or spec.metric == ALL_METRICS or threshold is None or compare is None:
        return list(results)
    values = _metrics_frame(results, [spec.metric])[spec.metric]
    mask = values.notna() & compare(values, threshold)
    return [r for r, keep in zip(results, mask) if keep]


def sort_results(results: Sequence[CruxResult], spec: SortSpec) -> List[CruxResult]:
    """Stable sort by URL or by a metric, missing metric values counting as 0."""
    if not spec.key:
        return list(results)
    if spec.key == URL_KEY:
        keys = pd.Series([r.url or "" for r in results], dtype=object)
    else:
        keys = _metrics_frame(results, [spec.key])[spec.key].fillna(0)
    order = keys.sort_values(ascending=spec.direction != "desc", kind="stable").index
    return [results[i] for i in order]


def paginate(rows: Sequence[CruxResult], spec: PageSpec) -> List[CruxResult]:
    size = int(spec.page_size)
    index = int(spec.page_index)
    if size <= 0 or index < 0:
        return []
    start = index * size
    return list(rows[start:start + size])


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 1
    return max(1, math.ceil(total / page_size))


def aggregate_stats(results: Sequence[CruxResult]) -> Dict[str, MetricStats]:
    """Sum, average, min and max per metric over the whole result list.

    The average divides by the number of results, not by the number of
    results reporting that metric.
    """
    if not results:
        return {}
    columns = metric_columns(results)
    frame = _metrics_frame(results, columns)
    total = len(results)
    stats = {}
    for name in columns:
        col = frame[name]
        col_sum = float(col.sum())
        stats[name] = MetricStats(
            sum=col_sum,
            avg=col_sum / total,
            min=float(col.min()),
            max=float(col.max()),
        )
    return stats


def derive_view(results: Sequence[CruxResult], view: ViewState) -> DerivedView:
    results = list(results)
    ordered = sort_results(filter_results(results, view.filter), view.sort)
    return DerivedView(
        visible_rows=paginate(ordered, view.page),
        total_filtered_count=len(ordered),
        aggregate=aggregate_stats(results),
    )


# ---------------------- Display frames ----------------------

def results_frame(rows: Sequence[CruxResult], columns: List[str]) -> pd.DataFrame:
    out = []
    for r in rows:
        row = {
            "URL": r.url,
            "Origin": r.origin or MISSING,
            "Collection period": format_collection_period(r.collection_period),
        }
        for name in columns:
            row[metric_label(name)] = format_metric(name, r.metric(name))
        out.append(row)
    headers = ["URL", "Origin", "Collection period"] + [metric_label(c) for c in columns]
    return pd.DataFrame(out, columns=headers)


def rating_frame(rows: Sequence[CruxResult], columns: List[str]) -> pd.DataFrame:
    """Ratings laid out like results_frame; non-metric cells are empty."""
    out = []
    for r in rows:
        row = {"URL": "", "Origin": "", "Collection period": ""}
        for name in columns:
            row[metric_label(name)] = rate_metric(name, r.metric(name))
        out.append(row)
    headers = ["URL", "Origin", "Collection period"] + [metric_label(c) for c in columns]
    return pd.DataFrame(out, columns=headers)


def _two_places(value: float) -> str:
    if value is None or math.isnan(value):
        return MISSING
    return f"{value:.2f}"


def aggregate_frame(aggregate: Dict[str, MetricStats]) -> pd.DataFrame:
    rows = [
        {
            "Metric": metric_label(name),
            "Average": _two_places(s.avg),
            "Sum": _two_places(s.sum),
            "Min": _two_places(s.min),
            "Max": _two_places(s.max),
        }
        for name, s in aggregate.items()
    ]
    return pd.DataFrame(rows, columns=AGGREGATE_COLUMNS)
