"""A PDF engine that tries several engines in turn until one succeeds."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pdfrelay.engine import Context, PdfEngine, PdfEngineError, PdfFormats, SplitMode

_POLL_INTERVAL = 0.02

T = TypeVar("T")


def _run(ctx: Context, func: Callable[[], T]) -> dict[str, Any]:
    """Run func in a thread; raise as soon as ctx is done.

    Returns a dict holding either "value" or "error".
    """
    ctx.raise_if_done()
    outcome: dict[str, Any] = {}
    finished = threading.Event()

    def target() -> None:
        try:
            outcome["value"] = func()
        except Exception as exc:  # every engine failure leads to the next engine
            outcome["error"] = exc
        finally:
            finished.set()

    threading.Thread(target=target, daemon=True).start()
    while not finished.wait(_POLL_INTERVAL):
        ctx.raise_if_done()
    return outcome


@dataclass
class MultiPdfEngine(PdfEngine):
    """Delegates each method to its own ordered list of engines."""

    merge_engines: list[PdfEngine] = field(default_factory=list)
    split_engines: list[PdfEngine] = field(default_factory=list)
    flatten_engines: list[PdfEngine] = field(default_factory=list)
    convert_engines: list[PdfEngine] = field(default_factory=list)
    read_metadata_engines: list[PdfEngine] = field(default_factory=list)
    write_metadata_engines: list[PdfEngine] = field(default_factory=list)
    id = "multi"

    @staticmethod
    def _first_success(
        ctx: Context,
        engines: Sequence[PdfEngine],
        call: Callable[[PdfEngine], T],
        operation: str,
    ) -> T:
        errors: list[Exception] = []
        for engine in engines:
            outcome = _run(ctx, lambda engine=engine: call(engine))
            if "error" in outcome:
                errors.append(outcome["error"])
                continue
            return outcome["value"]

        detail = "; ".join(str(error) for error in errors)
        raise PdfEngineError(f"{operation} with multi PDF engines: {detail}") from (
            errors[-1] if errors else None
        )

    def merge(self, ctx: Context, input_paths: Sequence[str], output_path: str) -> None:
        self._first_success(
            ctx,
            self.merge_engines,
            lambda engine: engine.merge(ctx, input_paths, output_path),
            "merge PDFs",
        )

    def split(
        self, ctx: Context, mode: SplitMode, input_path: str, output_dir_path: str
    ) -> list[str]:
        return self._first_success(
            ctx,
            self.split_engines,
            lambda engine: engine.split(ctx, mode, input_path, output_dir_path),
            "split PDF",
        )

    def flatten(self, ctx: Context, input_path: str) -> None:
        self._first_success(
            ctx,
            self.flatten_engines,
            lambda engine: engine.flatten(ctx, input_path),
            "flatten PDF",
        )

    def convert(
        self, ctx: Context, formats: PdfFormats, input_path: str, output_path: str
    ) -> None:
        self._first_success(
            ctx,
            self.convert_engines,
            lambda engine: engine.convert(ctx, formats, input_path, output_path),
            f"convert PDF to '{formats}'",
        )

    def read_metadata(self, ctx: Context, input_path: str) -> dict[str, Any]:
        return self._first_success(
            ctx,
            self.read_metadata_engines,
            lambda engine: engine.read_metadata(ctx, input_path),
            "read PDF metadata",
        )

    def write_metadata(
        self, ctx: Context, metadata: Mapping[str, Any], input_path: str
    ) -> None:
        self._first_success(
            ctx,
            self.write_metadata_engines,
            lambda engine: engine.write_metadata(ctx, metadata, input_path),
            "write PDF metadata",
        )