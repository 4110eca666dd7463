"""PDF engine backed by the QPDF command-line tool: merge, page split, flatten."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
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
class QPdf(PdfEngine):
    """Merges, extracts pages from and flattens PDFs with QPDF."""

    bin_path: str = ""
    global_args: list[str] = field(default_factory=list)
    id = "qpdf"

    def provision(self, environ: Mapping[str, str] | None = None) -> None:
        self.bin_path = binary_from_env("QPDF_BIN_PATH", environ)
        # Warnings should not cause errors.
        self.global_args = ["--warning-exit-0"]

    def validate(self) -> None:
        check_binary(self.bin_path, "QPDF")

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
                f"split PDFs using mode '{mode.mode}' with QPDF: split mode not supported"
            )
        if not mode.unify:
            raise SplitModeNotSupportedError(
                f"split PDFs using mode '{mode.mode}' without unify with QPDF: "
                "split mode not supported"
            )

        args = [input_path, *self.global_args, "--pages", ".", mode.span, "--", output_path]
        try:
            run_command(ctx, self.bin_path, args)
        except PdfEngineError as exc:
            raise type(exc)(f"split PDFs with QPDF: {exc}") from exc
        return [output_path]

    def merge(self, ctx: Context, input_paths: Sequence[str], output_path: str) -> None:
        args = ["--empty", *self.global_args, "--pages", *input_paths, "--", output_path]
        try:
            run_command(ctx, self.bin_path, args)
        except PdfEngineError as exc:
            raise type(exc)(f"merge PDFs with QPDF: {exc}") from exc

    def flatten(self, ctx: Context, input_path: str) -> None:
        """Merge annotation appearances with page content, in place."""
        args = [
            input_path,
            "--generate-appearances",
            "--flatten-annotations=all",
            "--replace-input",
            *self.global_args,
        ]
        try:
            run_command(ctx, self.bin_path, args)
        except PdfEngineError as exc:
            raise type(exc)(f"flatten PDFs with QPDF: {exc}") from exc

    def convert(
        self, ctx: Context, formats: PdfFormats, input_path: str, output_path: str
    ) -> None:
        raise MethodNotSupportedError(
            f"convert PDF to '{formats}' with QPDF: method not supported"
        )

    def read_metadata(self, ctx: Context, input_path: str) -> dict[str, Any]:
        raise MethodNotSupportedError("read PDF metadata with QPDF: method not supported")

    def write_metadata(
        self, ctx: Context, metadata: Mapping[str, Any], input_path: str
    ) -> None:
        raise MethodNotSupportedError("write PDF metadata with QPDF: method not supported")