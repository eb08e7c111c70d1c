"""HTTP helpers shared by the platform clients."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

import httpx

from ..errors import AcquisitionCancelled, TransportError

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_DEFAULT_HEADERS = {"User-Agent": BROWSER_USER_AGENT}
_CHUNK_SIZE = 256 * 1024


def get_json(
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = 15.0,
) -> Any:
    """GET a JSON document. Transport and decoding failures become TransportError."""
    try:
        resp = httpx.get(
            url,
            params=params,
            headers=dict(headers or _DEFAULT_HEADERS),
            timeout=timeout,
            follow_redirects=True,
        )
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPError as exc:
        raise TransportError(f"GET {url} failed: {exc}") from exc
    except ValueError as exc:
        raise TransportError(f"GET {url} returned invalid JSON") from exc


def download(
    url: str,
    limit: int,
    headers: Optional[Mapping[str, str]] = None,
    cancel: Optional[threading.Event] = None,
    timeout: float = 120.0,
) -> tuple[bytes, bool, Optional[int]]:
    """Stream a binary payload into memory, keeping at most ``limit`` bytes.

    Returns (payload, truncated, total). The transfer stops as soon as the
    ceiling is crossed, so oversized payloads are never fully downloaded.
    ``total`` is the advertised Content-Length, or None when the server
    does not send one.
    """
    buffer = bytearray()
    truncated = False
    total: Optional[int] = None
    try:
        with httpx.stream(
            "GET",
            url,
            headers=dict(headers or _DEFAULT_HEADERS),
            timeout=timeout,
            follow_redirects=True,
        ) as resp:
            resp.raise_for_status()
            total = _content_length(resp)
            for chunk in resp.iter_bytes(_CHUNK_SIZE):
                if cancel is not None and cancel.is_set():
                    raise AcquisitionCancelled("download abandoned")
                room = limit - len(buffer)
                if len(chunk) > room:
                    buffer.extend(chunk[:room])
                    truncated = True
                    break
                buffer.extend(chunk)
    except httpx.HTTPError as exc:
        raise TransportError(f"download failed: {exc}") from exc

    logger.info("Downloaded %.2f MB%s", len(buffer) / 1024 / 1024,
                " (truncated)" if truncated else "")
    return bytes(buffer), truncated, total


def _content_length(resp: httpx.Response) -> Optional[int]:
    try:
        length = int(resp.headers.get("content-length", ""))
    except ValueError:
        return None
    return length if length > 0 else None
