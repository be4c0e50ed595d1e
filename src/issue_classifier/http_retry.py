from __future__ import annotations

import logging
import time
from typing import Any, Mapping

import requests

logger = logging.getLogger(__name__)

MAX_RETRY_SECONDS = 60


def get_retry_delay(
    headers: Mapping[str, str],
    attempt: int,
    base_seconds: int,
    max_seconds: int = MAX_RETRY_SECONDS,
) -> int:
    retry_after = headers.get("Retry-After") if headers else None
    if retry_after:
        try:
            return min(int(float(retry_after)), max_seconds)
        except ValueError:
            pass
    return min(base_seconds * (2**attempt), max_seconds)


def compute_throttle_delay(headers: Mapping[str, str]) -> float:
    limit = headers.get("X-RateLimit-Limit") if headers else None
    if not limit:
        return 0.0
    try:
        per_minute = float(limit)
    except ValueError:
        return 0.0
    if per_minute <= 0:
        return 0.0
    return round(60.0 / per_minute, 2)


def is_rate_limited(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"


def send_with_retries(
    session: requests.Session,
    method: str,
    url: str,
    max_retries: int = 5,
    base_retry_seconds: int = 5,
    raise_for_status: bool = True,
    **kwargs: Any,
) -> requests.Response:
    kwargs.setdefault("timeout", 120)
    for attempt in range(max_retries + 1):
        try:
            response = session.request(method, url, **kwargs)
            if is_rate_limited(response):
                if attempt >= max_retries:
                    response.raise_for_status()
                delay = get_retry_delay(response.headers, attempt, base_retry_seconds)
                logger.warning("Rate limited on %s %s, retrying in %ss", method, url, delay)
                time.sleep(delay)
                continue
            if raise_for_status:
                response.raise_for_status()
            return response
        except requests.HTTPError:
            raise
        except requests.RequestException as exc:
            if attempt >= max_retries:
                raise
            headers = exc.response.headers if exc.response is not None else {}
            delay = get_retry_delay(headers, attempt, base_retry_seconds)
            logger.warning("%s %s failed (%s), retrying in %ss", method, url, exc, delay)
            time.sleep(delay)
    raise RuntimeError(f"Failed to call {method} {url} after retries")
