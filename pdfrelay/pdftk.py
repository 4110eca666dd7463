"""PDF engine backed by the PDFtk command-line tool: merge and page split."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pdfrelay.engine import (
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


@dataclass
class PdfTk(PdfEngine):
    """Merges PDFs and extracts pages into one PDF with PDFtk."""

    bin_path: str = ""
    id = "pdftk"

    def provision(self, environ: Mapping[str, str] | None = None) -> None:
        self.bin_path = binary_from_env("PDFTK_BIN_PATH", environ)

    def validate(self) -> None:
        check_binary(self.bin_path, "PDFtk")

    def debug(self) -> dict[str, Any]:
        try:
            result = subprocess.run(
                [self.bin_path, "--version"],
                capture_output=True,
                text=True,
                check=True,
                start_new_session=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            return {"version": str(exc)}
        return {"version": result.stdout.split("\n", 1)[0]}

    def split(
        self, ctx: Context, mode: SplitMode, input_path: str, output_dir_path: str
    ) -> list[str]:
        output_path = os.path.join(output_dir_path, os.path.basename(input_path))
        if mode.mode != SPLIT_MODE_PAGES:
            raise SplitModeNotSupportedError(
                f"split PDFs using mode '{mode.mode}' with PDFtk: split mode not supported"
            )
        if not mode.unify:
            raise SplitModeNotSupportedError(
                f"split PDFs using mode '{mode.mode}' without unify with PDFtk: "
                "split mode not supported"
            )

        try:
            run_command(ctx, self.bin_path, [input_path, "cat", mode.span, "output", output_path])
        except PdfEngineError as exc:
            raise type(exc)(f"split PDFs with PDFtk: {exc}") from exc
        return [output_path]

    def merge(self, ctx: Context, input_paths: Sequence[str], output_path: str) -> None:
        try:
            run_command(ctx, self.bin_path, [*input_paths, "cat", "output", output_path])
        except PdfEngineError as exc:
            raise type(exc)(f"merge PDFs with PDFtk: {exc}") from exc

    def flatten(self, ctx: Context, input_path: str) -> None:
        raise MethodNotSupportedError("flatten PDF with PDFtk: method not supported")

    def convert(
        self, ctx: Context, formats: PdfFormats, input_path: str, output_path: str
    ) -> None:
        raise MethodNotSupportedError(
            f"convert PDF to '{formats}' with PDFtk: method not supported"
        )

    def read_metadata(self, ctx: Context, input_path: str) -> dict[str, Any]:
        raise MethodNotSupportedError("read PDF metadata with PDFtk: method not supported")

    def write_metadata(
        self, ctx: Context, metadata: Mapping[str, Any], input_path: str
    ) -> None:
        raise MethodNotSupportedError("write PDF metadata with PDFtk: method not supported")