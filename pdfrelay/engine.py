"""Common types for PDF engines and running their command-line tools."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

SPLIT_MODE_INTERVALS = "intervals"
SPLIT_MODE_PAGES = "pages"

_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class SplitMode:
    """How to split a PDF: by intervals or by pages."""

    mode: str = ""
    span: str = ""
    unify: bool = False


@dataclass(frozen=True)
class PdfFormats:
    """Target PDF formats of a conversion."""

    pdfa: str = ""
    pdfua: bool = False


class PdfEngineError(Exception):
    """Base error of the PDF engines."""


class MethodNotSupportedError(PdfEngineError):
    """The engine does not offer this method."""


class SplitModeNotSupportedError(PdfEngineError):
    """The engine does not offer this split mode."""


class CommandError(PdfEngineError):
    """A command-line tool could not start or failed."""


class ContextDoneError(PdfEngineError):
    """The context was cancelled or its deadline passed."""


class Context:
    """Cancellation and deadline shared by the work of one request."""

    def __init__(self, timeout: float | None = None, logger: logging.Logger | None = None):
        self._cancelled = threading.Event()
        self.deadline = None if timeout is None else time.monotonic() + timeout
        self.logger = logger or logging.getLogger("pdfrelay")

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def done(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context is done or the timeout elapses."""
        remaining = self.remaining()
        if remaining is not None and (timeout is None or remaining < timeout):
            timeout = remaining
        self._cancelled.wait(timeout)
        return self.done()

    def raise_if_done(self) -> None:
        if self._cancelled.is_set():
            raise ContextDoneError("context canceled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise ContextDoneError("context deadline exceeded")


class PdfEngine:
    """Interface of a PDF engine; every method is unsupported by default."""

    id = "pdfengine"

    def _unsupported(self, operation: str):
        raise MethodNotSupportedError(f"{operation} with {self.id}: method not supported")

    def merge(self, ctx: Context, input_paths: Sequence[str], output_path: str) -> None:
        self._unsupported("merge PDFs")

    def split(
        self, ctx: Context, mode: SplitMode, input_path: str, output_dir_path: str
    ) -> list[str]:
        self._unsupported("split PDF")

    def flatten(self, ctx: Context, input_path: str) -> None:
        self._unsupported("flatten PDF")

    def convert(
        self, ctx: Context, formats: PdfFormats, input_path: str, output_path: str
    ) -> None:
        self._unsupported(f"convert PDF to '{formats}'")

    def read_metadata(self, ctx: Context, input_path: str) -> dict[str, Any]:
        self._unsupported("read PDF metadata")

    def write_metadata(
        self, ctx: Context, metadata: Mapping[str, Any], input_path: str
    ) -> None:
        self._unsupported("write PDF metadata")


def _kill(proc: subprocess.Popen) -> None:
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()
    proc.communicate()


def run_command(ctx: Context, bin_path: str, args: Sequence[str]) -> str:
    """Run a tool in its own process group, stopping it when ctx is done.

    Returns the standard output of the tool.
    """
    ctx.raise_if_done()
    command = [bin_path, *args]
    ctx.logger.debug("executing command: %s", " ".join(command))
    try:
        proc = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=True,
        )
    except OSError as exc:
        raise CommandError(f"create command: {exc}") from exc

    while True:
        try:
            stdout, stderr = proc.communicate(timeout=_POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if ctx.done():
                _kill(proc)
                ctx.raise_if_done()

    if proc.returncode != 0:
        detail = stderr.strip()
        message = f"exit status {proc.returncode}"
        raise CommandError(f"{message}: {detail}" if detail else message)
    return stdout


def binary_from_env(variable: str, environ: Mapping[str, str] | None = None) -> str:
    """Return the binary path held by an environment variable."""
    env = os.environ if environ is None else environ
    try:
        return env[variable]
    except KeyError:
        raise PdfEngineError(f"{variable} environment variable is not set") from None


def check_binary(bin_path: str, label: str) -> None:
    """Raise when the binary path does not exist."""
    try:
        os.stat(bin_path)
    except FileNotFoundError as exc:
        raise PdfEngineError(f"{label} binary path does not exist: {exc}") from exc