"""HTTP retrieval of the source image."""

from __future__ import annotations

import logging

import httpx

from imgrecognition.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS: float = 30.0


def fetch_image(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    max_bytes: int | None = None,
    client: httpx.Client | None = None,
) -> bytes:
    """GET ``url`` and return the response body.

    Raises:
        FetchError: On transport errors, non-2xx responses, or a body larger
            than ``max_bytes``.
    """
    owns_client = client is None
    http = client if client is not None else httpx.Client(follow_redirects=True, timeout=timeout)
    try:
        with http.stream("GET", url) as response:
            response.raise_for_status()
            body = bytearray()
            for chunk in response.iter_bytes():
                body.extend(chunk)
                if max_bytes is not None and len(body) > max_bytes:
                    raise FetchError(f"response from {url} exceeds {max_bytes} bytes")
    except httpx.HTTPStatusError as exc:
        raise FetchError(f"{url} returned HTTP {exc.response.status_code}") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(f"request to {url} failed: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    logger.info("Fetched %d bytes from %s", len(body), url)
    return bytes(body)
