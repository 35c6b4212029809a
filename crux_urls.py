import urllib.parse as urlparse
from typing import List, Optional, Tuple


class InvalidUrlError(ValueError):
    """Raised when a URL is empty, malformed, or already queued."""


def _norm_url(u: str) -> str:
    return u.strip() if u else ""


def validate_url(url: str) -> bool:
    try:
        p = urlparse.urlparse(_norm_url(url))
    except (TypeError, ValueError):
        return False
    return bool(p.scheme and p.netloc)


def _check(url: str) -> str:
    url = _norm_url(url)
    if not url:
        raise InvalidUrlError("URL cannot be empty")
    if not validate_url(url):
        raise InvalidUrlError("Please enter a valid URL")
    return url


class UrlQueue:
    """Ordered working list of URLs waiting to be searched."""

    def __init__(self, urls: Optional[List[str]] = None):
        self._urls: List[str] = []
        for u in urls or []:
            self.add(u)

    @property
    def urls(self) -> List[str]:
        return list(self._urls)

    def __len__(self) -> int:
        return len(self._urls)

    def __contains__(self, url) -> bool:
        return _norm_url(url) in self._urls

    def add(self, url: str) -> str:
        url = _check(url)
        if url in self._urls:
            raise InvalidUrlError("URL already added")
        self._urls.append(url)
        return url

    def add_many(self, text: str) -> List[Tuple[str, str]]:
        """Add one URL per line; returns (line, error) for every rejected line."""
        errors = []
        for line in (text or "").splitlines():
            if not line.strip():
                continue
            try:
                self.add(line)
            except InvalidUrlError as e:
                errors.append((line.strip(), str(e)))
        return errors

    def remove(self, index: int) -> None:
        if 0 <= index < len(self._urls):
            del self._urls[index]

    def clear(self) -> None:
        self._urls = []

    def urls_for_search(self, pending: str = "") -> List[str]:
        """URLs to fetch for a search.

        With nothing queued, text still sitting in the input box is validated
        and searched on its own.
        """
        if not self._urls and _norm_url(pending):
            self.add(pending)
        if not self._urls:
            raise InvalidUrlError("Please add at least one URL")
        return self.urls
