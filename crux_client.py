"""Chrome UX Report client.

Queries the CrUX ``records:queryRecord`` endpoint for a single URL and
normalises the reply into a :class:`CruxResult` holding the p75 value of
each Core Web Vital the report contains. Without an API key the client
serves synthetic data instead, so the dashboard stays usable offline.
"""

import concurrent.futures
import datetime
import logging
import math
import os
import random
import urllib.parse as urlparse
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

import requests

from crux_metrics import METRIC_NAMES

logger = logging.getLogger(__name__)

CRUX_API_URL = "https://chromeuxreport.googleapis.com/v1/records:queryRecord"
FORM_FACTOR = "PHONE"
REQUEST_TIMEOUT = 30
DEFAULT_WORKERS = 6

API_KEY_ENV = "CRUX_API_KEY"
PLACEHOLDER_API_KEYS = {"YOUR_API_KEY"}

# CrUX metric identifier -> short metric name
CRUX_METRIC_IDS = {
    "largest_contentful_paint": "lcp",
    "first_input_delay": "fid",
    "cumulative_layout_shift": "cls",
    "first_contentful_paint": "fcp",
    "experimental_time_to_first_byte": "ttfb",
    "interaction_to_next_paint": "inp",
}

# metric -> (low, high) range for synthetic values
MOCK_METRIC_RANGES = {
    "lcp": (1000, 5000),
    "fid": (0, 300),
    "cls": (0, 0.25),
    "fcp": (500, 2500),
    "ttfb": (200, 1000),
    "inp": (50, 550),
}

MOCK_COLLECTION_DAYS = 28

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class CruxError(Exception):
    """Base class for errors raised by the CrUX client."""


class MalformedResponseError(CruxError):
    """Raised when a CrUX reply lacks the record/metrics structure."""


@dataclass(frozen=True)
class CollectionPeriod:
    first_date: Optional[dict] = None
    last_date: Optional[dict] = None


@dataclass(frozen=True)
class CruxResult:
    url: str
    metrics: Mapping[str, float] = field(default_factory=dict)
    origin: Optional[str] = None
    collection_period: CollectionPeriod = field(default_factory=CollectionPeriod)

    def __post_init__(self):
        if not isinstance(self.metrics, MappingProxyType):
            object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def metric(self, name: str) -> Optional[float]:
        """Return the p75 value for ``name``, or None when the report lacks it."""
        return self.metrics.get(name)

    def __reduce__(self):
        # MappingProxyType cannot be pickled; hand back a plain dict instead.
        return (
            self.__class__,
            (self.url, dict(self.metrics), self.origin, self.collection_period),
        )


def resolve_api_key(explicit: Optional[str] = None) -> Optional[str]:
    """Pick the credential to use, or None to run on synthetic data.

    An explicit value (even a blank one) wins over the environment.
    """
    if explicit is None:
        explicit = os.getenv(API_KEY_ENV, "")
    key = explicit.strip()
    if not key or key in PLACEHOLDER_API_KEYS:
        return None
    return key


def query_crux_record(url: str, api_key: str, timeout: float = REQUEST_TIMEOUT) -> dict:
    logger.debug("Querying CrUX for %s", url)
    resp = requests.post(
        CRUX_API_URL,
        params={"key": api_key},
        json={"url": url, "formFactor": FORM_FACTOR},
        headers=DEFAULT_HEADERS,
        timeout=timeout,
    )
    resp.raise_for_status()
    return resp.json()


def _p75(metric_data) -> Optional[float]:
    if not isinstance(metric_data, dict):
        return None
    percentiles = metric_data.get("percentiles")
    if not isinstance(percentiles, dict):
        return None
    try:
        value = float(percentiles.get("p75"))
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def parse_crux_record(url: str, data) -> CruxResult:
    """Normalise a raw CrUX reply into a CruxResult.

    Only metrics present in the reply end up in the metric set; nothing is
    defaulted. A reply without ``record.metrics`` raises
    MalformedResponseError.
    """
    record = data.get("record") if isinstance(data, dict) else None
    if not isinstance(record, dict) or not isinstance(record.get("metrics"), dict):
        raise MalformedResponseError(f"Invalid data format from CrUX API for {url}")

    metrics: Dict[str, float] = {}
    for crux_id, name in CRUX_METRIC_IDS.items():
        if crux_id not in record["metrics"]:
            continue
        value = _p75(record["metrics"][crux_id])
        if value is None:
            logger.warning("Skipping %s for %s: no usable p75 in response", crux_id, url)
            continue
        metrics[name] = value

    key = record.get("key") or {}
    period = record.get("collectionPeriod") or {}
    return CruxResult(
        url=url,
        metrics=metrics,
        origin=key.get("origin") if isinstance(key, dict) else None,
        collection_period=CollectionPeriod(
            first_date=period.get("firstDate") if isinstance(period, dict) else None,
            last_date=period.get("lastDate") if isinstance(period, dict) else None,
        ),
    )


def _date_dict(day: datetime.date) -> dict:
    return {"year": day.year, "month": day.month, "day": day.day}


def _origin_of(url: str) -> Optional[str]:
    try:
        p = urlparse.urlparse(url)
    except (TypeError, ValueError):
        return None
    if not p.scheme or not p.netloc:
        return None
    return f"{p.scheme}://{p.netloc}"


def generate_mock_result(url: str, rng: Optional[random.Random] = None) -> CruxResult:
    """Build a CruxResult with random but plausible values for every metric."""
    rng = rng or random
    metrics = {name: rng.uniform(*MOCK_METRIC_RANGES[name]) for name in METRIC_NAMES}
    last = datetime.date.today() - datetime.timedelta(days=1)
    first = last - datetime.timedelta(days=MOCK_COLLECTION_DAYS - 1)
    return CruxResult(
        url=url,
        metrics=metrics,
        origin=_origin_of(url),
        collection_period=CollectionPeriod(first_date=_date_dict(first), last_date=_date_dict(last)),
    )


def fetch_metrics(url: str, api_key: Optional[str] = None) -> CruxResult:
    if not api_key:
        logger.info("No CrUX API key configured, serving synthetic data for %s", url)
        return generate_mock_result(url)
    return parse_crux_record(url, query_crux_record(url, api_key))


def fetch_all(urls: List[str], api_key: Optional[str] = None, max_workers: int = DEFAULT_WORKERS) -> List[CruxResult]:
    """Fetch every URL concurrently; all succeed or the first failure is raised.

    Results come back in input order. When any fetch fails, fetches that have
    not started are cancelled and results already received are discarded.
    """
    if not urls:
        return []
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(urls))))
    try:
        futures = [executor.submit(fetch_metrics, u, api_key) for u in urls]
        done, _ = concurrent.futures.wait(futures, return_when=concurrent.futures.FIRST_EXCEPTION)
        for u, future in zip(urls, futures):
            if future not in done:
                continue
            exc = future.exception()
            if exc is not None:
                logger.error("CrUX fetch failed for %s: %s", u, exc)
                raise exc
        return [future.result() for future in futures]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
