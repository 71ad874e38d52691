"""
Endpoint discovery for the Uniform REST API.

The deployed API has used several path conventions over time (with or
without a ``/v1`` segment, with or without an ``/api`` prefix) and the
list, get, update and upload operations have not always agreed with each
other.  Rather than detecting the convention once, every call is issued
against an ordered list of candidate URLs and the first one that answers
with a 2xx status wins.  Nothing is cached between calls.

Transient failures on a single candidate (429 and 5xx responses, dropped
connections) are retried with exponential backoff by :func:`with_retries`
before moving on to the next candidate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

import requests

from src.utils.errors import EndpointUnreachable

TRANSIENT_STATUSES = (429, 500, 502, 503, 504)
ERROR_TEXT_LIMIT = 200


class RateLimiter:
    """
    Simple time-based rate limiter.  Ensures that no more than ``rpm``
    requests are dispatched per minute.  Only used when a limit is
    configured; the pipeline is sequential and normally stays well below
    the API's implicit limits.
    """

    def __init__(self, rpm: int = 120) -> None:
        self.rpm = max(1, rpm)
        self.interval = 60.0 / float(self.rpm)
        self._last = 0.0

    def wait(self, time_fn: Callable[[], float] = time.time, sleep_fn: Callable[[float], None] = time.sleep) -> None:
        now = time_fn()
        dt = now - self._last
        if dt < self.interval:
            sleep_fn(self.interval - dt)
        self._last = time_fn()


def uniform_headers(api_key: str, *, json_body: bool = True) -> Dict[str, str]:
    """
    Construct the default headers required for Uniform API requests.

    :param api_key: The Uniform API key, sent as a bearer token.
    :param json_body: Include ``Content-Type: application/json``.  Multipart
                      uploads must leave it out so ``requests`` can set the
                      boundary.
    """
    headers = {"Authorization": f"Bearer {api_key}"}
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


def with_retries(
    fn: Callable[[], requests.Response],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.7,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """
    Execute a function returning a ``requests.Response``, retrying on
    transient HTTP errors.  Retries are attempted on status codes 429
    (too many requests) and 5xx server errors.  Backoff is exponential.

    :param fn: A zero-argument callable that performs the HTTP request.
    :param max_attempts: Maximum number of attempts before giving up.
    :param base_delay: Base delay in seconds for exponential backoff.
    :return: The successful ``requests.Response``.
    :raises requests.HTTPError: if the final attempt returns a non-2xx status.
    """
    attempt = 0
    while True:
        try:
            resp = fn()
            resp.raise_for_status()
            return resp
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status not in TRANSIENT_STATUSES or attempt >= max_attempts - 1:
                raise
            # Use Retry-After header if provided, otherwise exponential backoff
            retry_after = e.response.headers.get("Retry-After")
            try:
                wait = float(retry_after) if retry_after else base_delay * (2 ** attempt)
            except ValueError:
                wait = base_delay * (2 ** attempt)
            sleep_fn(wait)
            attempt += 1
        except requests.RequestException:
            if attempt >= max_attempts - 1:
                raise
            sleep_fn(base_delay * (2 ** attempt))
            attempt += 1


def candidate_urls(api_root: str, api_host: str, project_id: str, path: str) -> List[str]:
    """
    Build the ordered URL candidates for ``path`` below the project root.

    Duplicates (for example when ``api_root`` is exactly ``api_host + "/api"``)
    are dropped while keeping the first occurrence in place.
    """
    path = path.lstrip("/")
    patterns = [
        f"{api_root}/v1/projects/{project_id}/{path}",
        f"{api_host}/api/v1/projects/{project_id}/{path}",
        f"{api_root}/projects/{project_id}/{path}",
        f"{api_host}/api/projects/{project_id}/{path}",
    ]
    seen = set()
    ordered: List[str] = []
    for url in patterns:
        if url not in seen:
            seen.add(url)
            ordered.append(url)
    return ordered


@dataclass
class ResolvedCall:
    url: str
    response: requests.Response


class EndpointResolver:
    """Issue a request against candidate URLs until one succeeds."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 30.0,
        max_attempts: int = 3,
        limiter: Optional[RateLimiter] = None,
        sleep_fn: Callable[[float], None] = time.sleep,
        log: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.limiter = limiter
        self.sleep_fn = sleep_fn
        self.log = log

    def request(self, operation: str, method: str, candidates: Iterable[str], **kwargs) -> ResolvedCall:
        """
        Try each candidate in order and return the first 2xx response.

        Keyword arguments are passed through to ``session.request``.  A
        zero-argument ``files_factory`` may be given instead of ``files`` so
        that upload bodies are rebuilt for every attempt.

        :raises EndpointUnreachable: when every candidate fails.
        """
        files_factory = kwargs.pop("files_factory", None)
        last_status: Optional[int] = None
        last_error = "no endpoint candidates"

        for url in candidates:
            def do_request(url: str = url) -> requests.Response:
                if self.limiter is not None:
                    self.limiter.wait()
                extra = {"files": files_factory()} if files_factory is not None else {}
                return self.session.request(method, url, timeout=self.timeout, **kwargs, **extra)

            try:
                resp = with_retries(do_request, max_attempts=self.max_attempts, sleep_fn=self.sleep_fn)
                return ResolvedCall(url=url, response=resp)
            except requests.HTTPError as e:
                last_status = e.response.status_code if e.response is not None else None
                last_error = (e.response.text if e.response is not None else str(e))[:ERROR_TEXT_LIMIT]
            except requests.RequestException as e:
                last_status = None
                last_error = str(e)[:ERROR_TEXT_LIMIT]
            if self.log:
                self.log(f"{method} {url} failed ({last_status}): {last_error[:100]}", "DEBUG")

        raise EndpointUnreachable(operation, last_status, last_error)

    def resolve(self, operation: str, candidates: Iterable[str], method: str = "GET", **kwargs) -> str:
        """Return the first candidate URL that answers ``method`` successfully."""
        return self.request(operation, method, candidates, **kwargs).url
