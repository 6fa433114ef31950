from __future__ import annotations

"""HTTP client util for the quote provider.

A pooled requests Session with urllib3 retries on transient statuses and
refused connections. Read timeouts are not retried. Every call carries an
explicit timeout.
"""
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class HttpError(Exception):
    pass


def make_session(retries: int = 1, backoff: float = 0.3) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=retries,
        connect=retries,
        read=0,
        backoff_factor=backoff,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def get_json(
    session: requests.Session,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 5.0,
) -> Dict[str, Any]:
    try:
        response = session.get(url, headers=headers or {}, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:  # ValueError for JSON decode
        raise HttpError(f"Failed to fetch JSON from {url}: {e}") from e
    if not isinstance(payload, dict):
        raise HttpError(f"Unexpected payload type from {url}: {type(payload).__name__}")
    return payload
