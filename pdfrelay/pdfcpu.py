"""PDF engine backed by the pdfcpu command-line tool: merge and split."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pdfrelay.engine import (
    SPLIT_MODE_INTERVALS,
    SPLIT_MODE_PAGES,
    Context,
    MethodNotSupportedError,
    PdfEngine,
    PdfEngineError,
    PdfFormats,
    SplitMode,
    SplitModeNotSupportedError,
    binary_from_env,
    check_binary,
    run_command,
)
from pdfrelay.naturalsort import sort_by_digit_suffix


@dataclass
class PdfCpu(PdfEngine):
    """Merges and splits PDFs with pdfcpu."""

    bin_path: str = ""
    id = "pdfcpu"

    def provision(self, environ: Mapping[str, str] | None = None) -> None:
        self.bin_path = binary_from_env("PDFCPU_BIN_PATH", environ)

    def validate(self) -> None:
        check_binary(self.bin_path, "pdfcpu")

    def debug(self) -> dict[str, Any]:
        try:
            result = subprocess.run(
                [self.bin_path, "version"],
                capture_output=True,
                text=True,
                check=True,
                start_new_session=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            return {"version": str(exc)}

        for line in result.stdout.split("\n"):
            if line.startswith("pdfcpu:"):
                return {"version": line[len("pdfcpu:"):].strip()}
        return {"version": "Unable to determine pdfcpu version"}

    def merge(self, ctx: Context, input_paths: Sequence[str], output_path: str) -> None:
        try:
            run_command(ctx, self.bin_path, ["merge", output_path, *input_paths])
        except PdfEngineError as exc:
            raise type(exc)(f"merge PDFs with pdfcpu: {exc}") from exc

    def split(
        self, ctx: Context, mode: SplitMode, input_path: str, output_dir_path: str
    ) -> list[str]:
        if mode.mode == SPLIT_MODE_INTERVALS:
            args = ["split", "-mode", "span", input_path, output_dir_path, mode.span]
        elif mode.mode == SPLIT_MODE_PAGES and mode.unify:
            output_path = os.path.join(output_dir_path, os.path.basename(input_path))
            args = ["trim", "-pages", mode.span, input_path, output_path]
        elif mode.mode == SPLIT_MODE_PAGES:
            args = ["extract", "-mode", "page", "-pages", mode.span, input_path, output_dir_path]
        else:
            raise SplitModeNotSupportedError(
                f"split PDFs using mode '{mode.mode}' with pdfcpu: split mode not supported"
            )

        try:
            run_command(ctx, self.bin_path, args)
        except PdfEngineError as exc:
            raise type(exc)(f"split PDFs with pdfcpu: {exc}") from exc

        output_paths = [
            os.path.join(root, name)
            for root, _dirs, files in os.walk(output_dir_path)
            for name in files
            if os.path.splitext(name)[1].lower() == ".pdf"
        ]
        return sort_by_digit_suffix(output_paths)

    def flatten(self, ctx: Context, input_path: str) -> None:
        raise MethodNotSupportedError("flatten PDF with pdfcpu: method not supported")

    def convert(
        self, ctx: Context, formats: PdfFormats, input_path: str, output_path: str
    ) -> None:
        raise MethodNotSupportedError(
            f"convert PDF to '{formats}' with pdfcpu: method not supported"
        )

    def read_metadata(self, ctx: Context, input_path: str) -> dict[str, Any]:
        raise MethodNotSupportedError("read PDF metadata with pdfcpu: method not supported")

    def write_metadata(
        self, ctx: Context, metadata: Mapping[str, Any], input_path: str
    ) -> None:
        raise MethodNotSupportedError("write PDF metadata with pdfcpu: method not supported")