"""Asynchronous delivery of request results to caller-given webhook URLs."""

from __future__ import annotations

import json
import logging
import os
import re
import threading
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Union

import requests

from pdfrelay.webhook_client import WebhookClient

URL_HEADER = "Gotenberg-Webhook-Url"
ERROR_URL_HEADER = "Gotenberg-Webhook-Error-Url"
METHOD_HEADER = "Gotenberg-Webhook-Method"
ERROR_METHOD_HEADER = "Gotenberg-Webhook-Error-Method"
EXTRA_HEADERS_HEADER = "Gotenberg-Webhook-Extra-Http-Headers"
TRACE_HEADER = "Gotenberg-Trace"

_ALLOWED_METHODS = ("POST", "PATCH", "PUT")
_BINARY_BYTES = set(range(0x00, 0x09)) | {0x0B} | set(range(0x0E, 0x1B)) | set(range(0x1C, 0x20))

PatternLike = Union[str, "re.Pattern[str]", None]


class WebhookRequestError(Exception):
    """A webhook request that cannot be accepted, with its HTTP status."""

    def __init__(self, status_code: int, message: str, public_message: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.public_message = public_message or message


@dataclass
class WebhookOptions:
    """Settings of the webhook feature; empty lists mean no filtering."""

    allow_list: str = ""
    deny_list: str = ""
    error_allow_list: str = ""
    error_deny_list: str = ""
    max_retry: int = 4
    retry_min_wait: float = 1.0
    retry_max_wait: float = 30.0
    client_timeout: float = 30.0
    disable: bool = False
    trace_header: str = TRACE_HEADER


def _compile(pattern: PatternLike) -> re.Pattern[str] | None:
    if pattern is None or pattern == "":
        return None
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def filter_url(allow_list: PatternLike, deny_list: PatternLike, url: str) -> str:
    """Return the URL when the allow list matches it and the deny list does not."""
    allow = _compile(allow_list)
    if allow is not None and not allow.search(url):
        raise WebhookRequestError(
            403, f"'{url}' does not match the expression from the allowed list", "Forbidden"
        )
    deny = _compile(deny_list)
    if deny is not None and deny.search(url):
        raise WebhookRequestError(
            403, f"'{url}' matches the expression from the denied list", "Forbidden"
        )
    return url


def method_from_header(headers: Mapping[str, str], name: str) -> str:
    """Return the HTTP method named by the header; POST when absent."""
    method = _header(headers, name)
    if not method:
        return "POST"
    method = method.upper()
    if method in _ALLOWED_METHODS:
        return method
    raise WebhookRequestError(
        400,
        f"webhook method '{method}' is not 'POST', 'PATCH' or 'PUT'",
        f"Invalid '{name}' header value: expected 'POST', 'PATCH' or 'PUT', "
        f"but got '{method}'",
    )


def parse_extra_headers(value: str) -> dict[str, str]:
    """Decode the JSON object of extra HTTP headers."""
    if not value:
        return {}
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError as exc:
        detail = str(exc)
    else:
        if decoded is None:
            return {}
        if isinstance(decoded, dict) and all(isinstance(v, str) for v in decoded.values()):
            return dict(decoded)
        detail = "expected a JSON object of string values"
    raise WebhookRequestError(
        400,
        f"unmarshal webhook extra HTTP headers: {detail}",
        f"Invalid '{EXTRA_HEADERS_HEADER}' header value: {detail}",
    )


def _detect_content_type(head: bytes) -> str:
    if head.startswith(b"%PDF-"):
        return "application/pdf"
    if head.startswith(b"PK\x03\x04"):
        return "application/zip"
    if head.startswith(b"\x1f\x8b\x08"):
        return "application/x-gzip"
    if any(byte in _BINARY_BYTES for byte in head):
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


def _quote(name: str) -> str:
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _parse_error(exc: Exception) -> tuple[int, str]:
    status = getattr(exc, "status_code", None)
    message = getattr(exc, "public_message", None)
    if isinstance(status, int) and isinstance(message, str):
        return status, message
    return 500, "Internal Server Error"


class Webhook:
    """Runs a request in the background and uploads its result to a webhook."""

    def __init__(
        self,
        options: WebhookOptions | None = None,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ):
        self.options = options or WebhookOptions()
        self.allow_list = _compile(self.options.allow_list)
        self.deny_list = _compile(self.options.deny_list)
        self.error_allow_list = _compile(self.options.error_allow_list)
        self.error_deny_list = _compile(self.options.error_deny_list)
        self.session = session
        self.logger = logger or logging.getLogger("pdfrelay.webhook")

    def handle(
        self,
        headers: Mapping[str, str],
        process: Callable[[], str],
        output_filename: Callable[[str], str] | None = None,
    ) -> threading.Thread | None:
        """Start delivering process()'s output file to the webhook.

        Returns the started thread, or None when the feature is disabled or
        the request has no webhook URL; the caller then proceeds as usual.
        """
        if self.options.disable:
            return None
        url = _header(headers, URL_HEADER)
        if not url:
            return None

        error_url = _header(headers, ERROR_URL_HEADER)
        if not error_url:
            raise WebhookRequestError(
                400,
                "empty webhook error URL",
                f"Invalid '{ERROR_URL_HEADER}' header: empty value or header not provided",
            )

        for label, allow, deny, target in (
            ("webhook URL", self.allow_list, self.deny_list, url),
            ("webhook error URL", self.error_allow_list, self.error_deny_list, error_url),
        ):
            try:
                filter_url(allow, deny, target)
            except WebhookRequestError as exc:
                raise WebhookRequestError(
                    exc.status_code, f"filter {label}: {exc}", exc.public_message
                ) from exc

        for label, name in (("webhook", METHOD_HEADER), ("webhook error", ERROR_METHOD_HEADER)):
            try:
                method_from_header(headers, name)
            except WebhookRequestError as exc:
                raise WebhookRequestError(
                    exc.status_code,
                    f"get method to use for {label}: {exc}",
                    exc.public_message,
                ) from exc
        method = method_from_header(headers, METHOD_HEADER)
        error_method = method_from_header(headers, ERROR_METHOD_HEADER)

        extra_headers = parse_extra_headers(_header(headers, EXTRA_HEADERS_HEADER))
        trace = _header(headers, self.options.trace_header) or str(uuid.uuid4())

        client_args = {}
        if self.session is not None:
            client_args["session"] = self.session
        client = WebhookClient(
            url=url,
            method=method,
            error_url=error_url,
            error_method=error_method,
            extra_http_headers=extra_headers,
            max_retry=self.options.max_retry,
            retry_min_wait=self.options.retry_min_wait,
            retry_max_wait=self.options.retry_max_wait,
            timeout=self.options.client_timeout or None,
            logger=self.logger,
            **client_args,
        )

        thread = threading.Thread(
            target=self._deliver,
            args=(client, process, output_filename or os.path.basename, trace, extra_headers),
            name="webhook-delivery",
        )
        thread.start()
        return thread

    def _deliver(
        self,
        client: WebhookClient,
        process: Callable[[], str],
        output_filename: Callable[[str], str],
        trace: str,
        extra_headers: Mapping[str, str],
    ) -> None:
        try:
            output_path = process()
        except Exception as exc:
            self.logger.error("%s", exc)
            self._send_error(client, exc, trace)
            return

        try:
            with open(output_path, "rb") as output:
                head = output.read(512)
                if not head:
                    raise EOFError("read header of output file: EOF")
                size = os.fstat(output.fileno()).st_size
                output.seek(0)

                headers = {
                    "Content-Type": _detect_content_type(head),
                    "Content-Length": str(size),
                    self.options.trace_header: trace,
                }
                if not any(key.lower() == "content-disposition" for key in extra_headers):
                    headers["Content-Disposition"] = (
                        f"attachment; filename={_quote(output_filename(output_path))}"
                    )
                client.send(output, headers, False)
        except Exception as exc:
            self.logger.error("send output file to webhook: %s", exc)
            self._send_error(client, exc, trace)

    def _send_error(self, client: WebhookClient, exc: Exception, trace: str) -> None:
        status, message = _parse_error(exc)
        body = json.dumps(
            {"status": status, "message": message}, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
        headers = {"Content-Type": "application/json", self.options.trace_header: trace}
        try:
            client.send(body, headers, True)
        except Exception as send_exc:
            self.logger.error("send error response to webhook: %s", send_exc)