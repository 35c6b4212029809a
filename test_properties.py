"""Property tests for the metric classifier and the derivation pipeline."""

import math

from hypothesis import given
from hypothesis import strategies as st

import crux_metrics as cm
import crux_pipeline as cp
from crux_client import CruxResult

RATINGS = {cm.GOOD, cm.NEEDS_IMPROVEMENT, cm.POOR, cm.UNKNOWN}

metric_names = st.one_of(st.sampled_from(cm.METRIC_NAMES), st.text(max_size=8), st.none())
any_values = st.one_of(
    st.none(),
    st.floats(allow_nan=True, allow_infinity=True),
    st.integers(),
    st.text(max_size=8),
    st.booleans(),
)
metric_values = st.floats(min_value=0, max_value=10000, allow_nan=False, allow_infinity=False)
metric_sets = st.dictionaries(st.sampled_from(cm.METRIC_NAMES), metric_values, max_size=6)
result_lists = st.lists(metric_sets, max_size=12).map(
    lambda sets: [CruxResult(url=f"https://site{i}.com", metrics=m) for i, m in enumerate(sets)]
)
view_states = st.builds(
    cp.ViewState,
    filter=st.builds(
        cp.FilterSpec,
        metric=st.sampled_from((cp.ALL_METRICS,) + cm.METRIC_NAMES),
        operator=st.sampled_from(list(cp.OPERATORS)),
        value=st.one_of(metric_values, st.none(), st.just("abc")),
    ),
    sort=st.builds(
        cp.SortSpec,
        key=st.sampled_from((None, cp.URL_KEY) + cm.METRIC_NAMES),
        direction=st.sampled_from(cp.SORT_DIRECTIONS),
    ),
    page=st.builds(cp.PageSpec, page_index=st.integers(0, 5), page_size=st.sampled_from(cp.PAGE_SIZE_OPTIONS)),
)


@given(metric_names, any_values)
def test_rate_metric_is_total(metric, value):
    assert cm.rate_metric(metric, value) in RATINGS


@given(metric_names, any_values)
def test_format_metric_is_total(metric, value):
    assert isinstance(cm.format_metric(metric, value), str)


@given(st.text(max_size=12))
def test_describe_metric_is_total(metric):
    assert isinstance(cm.describe_metric(metric), str)


@given(st.sampled_from(cm.METRIC_NAMES), st.floats(min_value=0, max_value=1, allow_nan=False))
def test_good_band_inclusive(metric, fraction):
    good, _ = cm.METRIC_THRESHOLDS[metric]
    assert cm.rate_metric(metric, good * fraction) == cm.GOOD


@given(st.sampled_from(cm.METRIC_NAMES))
def test_just_above_good_needs_improvement(metric):
    good, _ = cm.METRIC_THRESHOLDS[metric]
    assert cm.rate_metric(metric, math.nextafter(good, math.inf)) == cm.NEEDS_IMPROVEMENT


@given(st.text(min_size=1, max_size=8).filter(lambda m: m.strip().lower() not in cm.METRIC_THRESHOLDS), metric_values)
def test_unknown_metric_always_unknown(metric, value):
    assert cm.rate_metric(metric, value) == cm.UNKNOWN


@given(result_lists, st.sampled_from(cm.METRIC_NAMES), st.sampled_from(list(cp.OPERATORS)), metric_values)
def test_filter_keeps_only_matching_results(results, metric, op, value):
    out = cp.filter_results(results, cp.FilterSpec(metric, op, value))
    compare = cp.OPERATORS[op]
    for r in out:
        assert r.metric(metric) is not None
        assert compare(r.metric(metric), value)
    expected = [r for r in results if r.metric(metric) is not None and compare(r.metric(metric), value)]
    assert out == expected


@given(result_lists, view_states)
def test_derive_view_is_idempotent_and_pure(results, view):
    snapshot = [(r.url, dict(r.metrics)) for r in results]
    first = cp.derive_view(results, view)
    second = cp.derive_view(results, view)
    assert first == second
    assert [(r.url, dict(r.metrics)) for r in results] == snapshot
    assert len(first.visible_rows) <= view.page.page_size
    assert first.total_filtered_count <= len(results)


@given(result_lists, view_states)
def test_aggregate_covers_every_column(results, view):
    derived = cp.derive_view(results, view)
    assert list(derived.aggregate) == cp.metric_columns(results)
    for name, stats in derived.aggregate.items():
        defined = [r.metric(name) for r in results if r.metric(name) is not None]
        assert math.isclose(stats.sum, sum(defined), rel_tol=1e-9, abs_tol=1e-9)
        assert math.isclose(stats.avg, sum(defined) / len(results), rel_tol=1e-9, abs_tol=1e-9)
        assert stats.min == min(defined)
        assert stats.max == max(defined)
