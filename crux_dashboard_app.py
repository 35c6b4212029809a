import logging
import os

import pandas as pd
import streamlit as st

from crux_client import API_KEY_ENV, DEFAULT_WORKERS, fetch_all, resolve_api_key
from crux_metrics import (
    GOOD,
    METRIC_NAMES,
    NEEDS_IMPROVEMENT,
    POOR,
    describe_metric,
    metric_label,
    rating_color,
)
from crux_pipeline import (
    ALL_METRICS,
    OPERATOR_LABELS,
    PAGE_SIZE_OPTIONS,
    SORT_DIRECTIONS,
    URL_KEY,
    FilterSpec,
    PageSpec,
    SortSpec,
    ViewState,
    aggregate_frame,
    derive_view,
    metric_columns,
    page_count,
    rating_frame,
    results_frame,
)
from crux_urls import InvalidUrlError, UrlQueue

logger = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = "Failed to fetch CrUX data. Please check your API key and URLs."


def _sort_label(key: str) -> str:
    if not key:
        return "(input order)"
    if key == URL_KEY:
        return "URL"
    return metric_label(key)


def _cell_styles(ratings: pd.DataFrame) -> pd.DataFrame:
    return ratings.map(lambda r: f"background-color: {rating_color(r)}; color: #222" if r else "")


def _add_pending_url():
    try:
        st.session_state.url_queue.add(st.session_state.pending_url)
    except InvalidUrlError as e:
        st.session_state.input_error = str(e)
        return
    st.session_state.pending_url = ""
    st.session_state.input_error = ""


def _add_bulk_urls():
    errors = st.session_state.url_queue.add_many(st.session_state.bulk_urls)
    st.session_state.bulk_errors = errors
    st.session_state.bulk_urls = ""


def _remove_url(index: int):
    st.session_state.url_queue.remove(index)


def _start_search():
    queue = st.session_state.url_queue
    consumes_pending = len(queue) == 0
    try:
        urls = queue.urls_for_search(st.session_state.pending_url)
    except InvalidUrlError as e:
        st.session_state.input_error = str(e)
        return
    if consumes_pending:
        st.session_state.pending_url = ""
    st.session_state.input_error = ""
    st.session_state.search_urls = urls
    st.session_state.searching = True


# Page config
st.set_page_config(page_title="CrUX Dashboard", layout="wide")
st.markdown("""
<style>
  [data-testid='stDeployButton'] { display: none !important; }
</style>
""", unsafe_allow_html=True)

st.title("📊 CrUX Dashboard")

for key in ("url_queue", "results", "error", "input_error", "bulk_errors", "search_urls", "searching", "pending_url"):
    if key not in st.session_state:
        if key == "url_queue":
            st.session_state[key] = UrlQueue()
        elif key in ("results", "bulk_errors", "search_urls"):
            st.session_state[key] = []
        elif key == "searching":
            st.session_state[key] = False
        else:
            st.session_state[key] = ""

with st.sidebar:
    st.header("Configuration")
    api_key_input = st.text_input(
        "CrUX API Key",
        value=os.getenv(API_KEY_ENV, ""),
        type="password",
        disabled=st.session_state.searching,
        help="Google Cloud API key with Chrome UX Report API access. Leave empty to use synthetic data.",
    )
    api_key = resolve_api_key(api_key_input)
    if not api_key:
        st.info("No API key set: results are synthetic sample data.")
    fetch_workers = st.number_input(
        "Fetch workers (parallel threads)",
        min_value=1, max_value=20, value=DEFAULT_WORKERS, step=1,
        disabled=st.session_state.searching,
    )

queue = st.session_state.url_queue

with st.expander("Step 1: Enter URL(s) to analyze", expanded=True):
    url_col, add_col = st.columns([4, 1])
    with url_col:
        st.text_input("URL", key="pending_url", placeholder="https://example.com", disabled=st.session_state.searching)
    with add_col:
        st.button("Add", on_click=_add_pending_url, disabled=st.session_state.searching)
    if st.session_state.input_error:
        st.error(st.session_state.input_error)

    st.text_area("Or paste a list of URLs, one per line", key="bulk_urls", disabled=st.session_state.searching)
    st.button("Add list", on_click=_add_bulk_urls, disabled=st.session_state.searching)
    if st.session_state.bulk_errors:
        st.warning(f"{len(st.session_state.bulk_errors)} line(s) were not added.")
        st.dataframe(pd.DataFrame(st.session_state.bulk_errors, columns=["Line", "Error"]), hide_index=True, width='stretch')

    if len(queue):
        st.write("**URLs to analyze:**")
        for idx, u in enumerate(queue.urls):
            u_col, rm_col = st.columns([6, 1])
            u_col.write(u)
            rm_col.button("Remove", key=f"remove_{idx}_{u}", on_click=_remove_url, args=(idx,), disabled=st.session_state.searching)
        st.button("Clear list", on_click=queue.clear, disabled=st.session_state.searching)

    st.button(
        "Search",
        type="primary",
        on_click=_start_search,
        disabled=st.session_state.searching or (not len(queue) and not st.session_state.pending_url),
    )

if st.session_state.searching:
    urls = st.session_state.search_urls
    with st.spinner(f"Fetching CrUX data for {len(urls)} URL(s)..."):
        try:
            st.session_state.results = fetch_all(urls, api_key=api_key, max_workers=int(fetch_workers))
            st.session_state.error = ""
        except Exception:
            logger.exception("CrUX batch fetch failed for %d URL(s)", len(urls))
            st.session_state.results = []
            st.session_state.error = FETCH_ERROR_MESSAGE
    st.session_state.searching = False
    st.rerun()

results = st.session_state.results

if st.session_state.error:
    st.error(st.session_state.error)
elif results:
    columns = metric_columns(results)
    metric_options = [ALL_METRICS] + columns
    sort_options = ["", URL_KEY] + columns
    if st.session_state.get("filter_metric") not in metric_options:
        st.session_state.filter_metric = ALL_METRICS
    if st.session_state.get("sort_key") not in sort_options:
        st.session_state.sort_key = ""

    st.write("### Filter results")
    f_metric, f_op, f_value = st.columns(3)
    filter_metric = f_metric.selectbox(
        "Metric", metric_options, key="filter_metric",
        format_func=lambda m: m if m == ALL_METRICS else metric_label(m),
    )
    filter_operator = f_op.selectbox(
        "Operator", list(OPERATOR_LABELS), key="filter_operator",
        format_func=OPERATOR_LABELS.get, disabled=filter_metric == ALL_METRICS,
    )
    filter_value = f_value.text_input("Value", key="filter_value", disabled=filter_metric == ALL_METRICS)

    s_key, s_dir, p_size = st.columns(3)
    sort_key = s_key.selectbox("Sort by", sort_options, key="sort_key", format_func=_sort_label)
    sort_direction = s_dir.radio(
        "Direction", SORT_DIRECTIONS, key="sort_direction", horizontal=True,
        format_func=lambda d: "Ascending" if d == "asc" else "Descending",
    )
    page_size = p_size.selectbox("Rows per page", PAGE_SIZE_OPTIONS, key="page_size")

    view = ViewState(
        filter=FilterSpec(metric=filter_metric, operator=filter_operator, value=filter_value),
        sort=SortSpec(key=sort_key or None, direction=sort_direction),
        page=PageSpec(page_index=0, page_size=int(page_size)),
    )
    pages = page_count(derive_view(results, view).total_filtered_count, view.page.page_size)
    page_number = st.number_input(f"Page (of {pages})", min_value=1, max_value=pages, value=1, step=1)
    view.page.page_index = int(page_number) - 1
    derived = derive_view(results, view)

    st.write("### CrUX data")
    if len(results) > 1:
        st.write("#### Aggregate statistics")
        st.dataframe(aggregate_frame(derived.aggregate), hide_index=True, width='stretch')

    rows = derived.visible_rows
    df_rows = results_frame(rows, columns)
    df_ratings = rating_frame(rows, columns)
    st.dataframe(df_rows.style.apply(lambda _: _cell_styles(df_ratings), axis=None), hide_index=True, width='stretch')
    st.caption(
        f"Showing {len(rows)} of {derived.total_filtered_count} matching result(s), {len(results)} fetched. "
        f"Ratings: {GOOD}, {NEEDS_IMPROVEMENT}, {POOR}."
    )

    with st.expander("Metric descriptions"):
        for name in METRIC_NAMES:
            st.write(f"**{metric_label(name)}**: {describe_metric(name)}")
