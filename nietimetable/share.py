"""
Share links.

A timetable is shared as a token in the URL fragment:

    https://<app>/#share=<token>

token = urlsafe_base64(zlib_deflate(compact_json(ShareData))), padding stripped.

Links created before compression was introduced carry
base64(percent_encoded(json)) instead. Those must keep working forever,
so decoding falls back to that format whenever the compressed path fails.
Decoding never raises: an unusable token gives None.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import zlib
from typing import Any, Optional, Sequence
from urllib.parse import quote, unquote

from nietimetable.config import DEFAULT_SHARE_BASE_URL, SHARE_HASH_PREFIX
from nietimetable.model import CustomEvent, ShareData, TimetableEvent


logger = logging.getLogger(__name__)

# Everything that malformed input can raise on the way to ShareData
_DECODE_ERRORS = (
    binascii.Error,
    zlib.error,
    ValueError,
    KeyError,
    TypeError,
    AttributeError,
    OverflowError,
    # json.loads on deeply nested arrays
    RecursionError,
)


def to_urlsafe_base64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def from_urlsafe_base64(token: str) -> bytes:
    padded = token + "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _compact_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def _load_share_data(text: str) -> ShareData:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise TypeError("share payload is not an object")
    return ShareData.from_dict(data)


def encode_share_data(
    events: Sequence[TimetableEvent],
    file_name: str,
    custom_events: Sequence[CustomEvent] = (),
) -> str:
    """
    Encode a timetable into a URL-safe share token.
    """
    data = ShareData(events=tuple(events), file_name=file_name, custom_events=tuple(custom_events))
    compressed = zlib.compress(_compact_json(data.to_dict()).encode("utf-8"))
    return to_urlsafe_base64(compressed)


def encode_legacy_share_data(events: Sequence[TimetableEvent], file_name: str) -> str:
    """
    The pre-compression token format. Only kept to produce fixtures for the
    decoder's fallback path.
    """
    data = ShareData(events=tuple(events), file_name=file_name)
    # same escaping as JavaScript's encodeURIComponent
    encoded = quote(_compact_json(data.to_dict()), safe="-_.!~*'()")
    return base64.b64encode(encoded.encode("ascii")).decode("ascii")


def decode_share_data(token: str) -> Optional[ShareData]:
    """
    Decode a share token. Returns None for invalid or corrupted tokens.
    """
    token = unquote(token.strip())

    try:
        raw = zlib.decompress(from_urlsafe_base64(token))
        return _load_share_data(raw.decode("utf-8"))
    except _DECODE_ERRORS as e:
        logger.debug("Compressed share token rejected (%s), trying legacy format", e)

    try:
        raw_legacy = base64.b64decode(token.encode("ascii"), validate=True).decode("ascii")
        return _load_share_data(unquote(raw_legacy))
    except _DECODE_ERRORS as e:
        logger.warning("Invalid share token %r...: %s", token[:50], e)
        return None


def extract_share_token(url: str) -> Optional[str]:
    """
    Token after '#share=' in a URL, or None if the URL has none.
    """
    idx = url.find(SHARE_HASH_PREFIX)
    if idx == -1:
        return None
    return url[idx + len(SHARE_HASH_PREFIX) :]


def decode_share_url(url: str) -> Optional[ShareData]:
    token = extract_share_token(url)
    if token is None:
        return None
    return decode_share_data(token)


def create_share_url(token: str, base_url: str = DEFAULT_SHARE_BASE_URL) -> str:
    """
    Full share URL. Any existing fragment of `base_url` is replaced.
    """
    return f"{base_url.split('#', 1)[0]}{SHARE_HASH_PREFIX}{token}"
