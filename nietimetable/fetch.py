from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple
from urllib.parse import unquote, urlparse

import requests


logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def is_url(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def _file_name_from_url(url: str) -> str:
    path = urlparse(url).path
    return unquote(path.rsplit("/", 1)[-1]) or "timetable"


def fetch_text(url: str, timeout: float = REQUEST_TIMEOUT) -> str:
    """
    Download a timetable export (HTML or .ics) and return it as text.

    Raises requests.HTTPError on a non-2xx response.
    """
    logger.debug("GET %s", url)
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()

    # Servers often send .ics without a charset; requests then guesses latin-1
    if resp.encoding is None or resp.encoding.lower() == "iso-8859-1":
        resp.encoding = resp.apparent_encoding or "utf-8"
    return resp.text


def load_source(source: str) -> Tuple[str, str]:
    """
    Read a local file or an http(s) URL.

    Returns:
        (text, file_name)
    """
    if is_url(source):
        return fetch_text(source), _file_name_from_url(source)

    path = Path(source)
    return path.read_text(encoding="utf-8", errors="replace"), path.name
