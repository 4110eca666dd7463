"""Delivery of results and error reports to webhook URLs, with retries."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import IO, Union

import requests
from requests.structures import CaseInsensitiveDict

USER_AGENT = "Gotenberg"

_INTEGER = re.compile(r"[+-]?[0-9]+")

# Errors in the request itself: retrying cannot help.
_INVALID_REQUEST = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidHeader,
)
# Transport errors that a retry would only repeat.
_PERMANENT = (
    requests.exceptions.TooManyRedirects,
    requests.exceptions.SSLError,
)

Body = Union[bytes, bytearray, IO[bytes]]


def _should_retry(status: int) -> bool:
    return status == 0 or status == 429 or (status >= 500 and status != 501)


@dataclass
class WebhookClient:
    """Sends a body to the webhook URL, or to the error URL on failure."""

    url: str
    method: str = "POST"
    error_url: str = ""
    error_method: str = "POST"
    extra_http_headers: dict[str, str] = field(default_factory=dict)
    start_time: float = field(default_factory=time.monotonic)
    max_retry: int = 4
    retry_min_wait: float = 1.0
    retry_max_wait: float = 30.0
    timeout: float | None = 30.0
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("pdfrelay.webhook")
    )
    session: requests.Session = field(default_factory=requests.Session)
    sleep: Callable[[float], None] = time.sleep

    def _backoff(self, attempt: int, response: requests.Response | None) -> float:
        if response is not None and response.status_code in (429, 503):
            retry_after = response.headers.get("Retry-After", "")
            if retry_after.isdigit():
                return float(retry_after)
        return min(self.retry_min_wait * 2**attempt, self.retry_max_wait)

    def _do(
        self, method: str, url: str, body: Body, headers: Mapping[str, str]
    ) -> requests.Response:
        seekable = hasattr(body, "seek") and hasattr(body, "tell")
        position = body.tell() if seekable else None
        attempts = self.max_retry + 1
        response: requests.Response | None = None
        failure: Exception | None = None

        for attempt in range(attempts):
            if position is not None:
                body.seek(position)
            response = None
            try:
                response = self.session.request(
                    method, url, data=body, headers=dict(headers), timeout=self.timeout
                )
            except _INVALID_REQUEST as exc:
                raise ValueError(f"create '{method}' request to '{url}': {exc}") from exc
            except _PERMANENT as exc:
                raise ConnectionError(f"send '{method}' request to '{url}': {exc}") from exc
            except requests.RequestException as exc:
                failure = exc
            else:
                if not _should_retry(response.status_code):
                    return response
                failure = None

            if attempt + 1 == attempts:
                break
            wait = self._backoff(attempt, response)
            if response is not None:
                response.close()
            self.logger.debug("retrying '%s' request to '%s' in %ss", method, url, wait)
            self.sleep(wait)

        if response is not None:
            response.close()
        detail = f"{method} {url} giving up after {attempts} attempt(s)"
        if failure is not None:
            detail = f"{detail}: {failure}"
        raise ConnectionError(f"send '{method}' request to '{url}': {detail}")

    def send(self, body: Body, headers: Mapping[str, str], errored: bool = False) -> None:
        """Send the body with the headers; the caller's headers win over extra ones."""
        url = self.error_url if errored else self.url
        method = self.error_method if errored else self.method

        caller_headers = CaseInsensitiveDict(headers)
        request_headers = CaseInsensitiveDict({"User-Agent": USER_AGENT})
        request_headers.update(self.extra_http_headers)

        content_length: int | None = None
        if "Content-Length" in caller_headers:
            raw = caller_headers["Content-Length"]
            if not _INTEGER.fullmatch(raw):
                raise ValueError(f"parse content length entry: invalid syntax '{raw}'")
            content_length = int(raw)
        request_headers.update(caller_headers)
        if content_length is None and isinstance(body, (bytes, bytearray)):
            content_length = len(body)

        response = self._do(method, url, body, request_headers)
        try:
            if response.status_code >= 400:
                raise ConnectionError(
                    f"send '{method}' request to '{url}': got status: "
                    f"'{response.status_code} {response.reason}'"
                )
        finally:
            response.close()

        latency = time.monotonic() - self.start_time
        fields = {
            "webhook_url": url,
            "method": method,
            "latency": latency,
            "latency_human": f"{latency:.3f}s",
            "bytes_out": -1 if content_length is None else content_length,
        }
        if errored:
            self.logger.warning("request to webhook with error details handled", extra=fields)
        else:
            self.logger.info("request to webhook handled", extra=fields)