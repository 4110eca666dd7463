"""Form parsing and request handlers for the PDF engine operations."""

from __future__ import annotations

import json
import os
import re
import shutil
import tempfile
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from pdfrelay.engine import (
    SPLIT_MODE_INTERVALS,
    SPLIT_MODE_PAGES,
    Context,
    PdfEngine,
    PdfEngineError,
    PdfFormats,
    SplitMode,
)

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}
_INTEGER = re.compile(r"[+-]?[0-9]+")


class FormError(ValueError):
    """Invalid form data; maps to an HTTP 400 response."""

    status_code = 400

    def __init__(self, message: str, public_message: str | None = None):
        super().__init__(message)
        self.public_message = public_message or f"Invalid form data: {message}"


class Workspace:
    """Working directory of one request and the files it produces."""

    def __init__(self, directory: str | None = None):
        self._owned = directory is None
        self.directory = tempfile.mkdtemp(prefix="pdfrelay-") if directory is None else directory
        self.output_paths: list[str] = []

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Remove the directory when this workspace created it."""
        if self._owned:
            shutil.rmtree(self.directory, ignore_errors=True)

    def generate_path(self, extension: str) -> str:
        """Return a new, unique path inside the workspace."""
        return os.path.join(self.directory, f"{uuid.uuid4()}{extension}")

    def create_sub_directory(self, name: str) -> str:
        path = os.path.join(self.directory, name)
        os.makedirs(path, exist_ok=True)
        return path

    def rename(self, old_path: str, new_path: str) -> None:
        os.replace(old_path, new_path)

    def add_output_paths(self, *args: str) -> None:
        self.output_paths.extend(args)


def _parse_bool(name: str, value: str) -> bool:
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise FormError(f"form field '{name}': invalid boolean value '{value}'")


def _field(fields: Mapping[str, str], name: str, mandatory: bool) -> str | None:
    if name not in fields:
        if mandatory:
            raise FormError(f"form field '{name}' is required")
        return None
    return fields[name]


def _bool_field(fields: Mapping[str, str], name: str) -> bool:
    value = fields.get(name)
    if value is None or value == "":
        return False
    return _parse_bool(name, value)


def parse_split_mode(fields: Mapping[str, str], mandatory: bool = False) -> SplitMode:
    """Build a SplitMode from the splitMode, splitSpan and splitUnify fields."""
    mode = ""
    span = ""

    value = _field(fields, "splitMode", mandatory)
    if value is not None:
        if value not in ("", SPLIT_MODE_INTERVALS, SPLIT_MODE_PAGES):
            raise FormError(
                f"form field 'splitMode': wrong value, expected either "
                f"'{SPLIT_MODE_INTERVALS}' or '{SPLIT_MODE_PAGES}'"
            )
        mode = value

    value = _field(fields, "splitSpan", mandatory)
    if value is not None:
        value = "".join(value.split())
        if mode == SPLIT_MODE_INTERVALS:
            if not _INTEGER.fullmatch(value):
                raise FormError(f"form field 'splitSpan': invalid integer '{value}'")
            if int(value) < 1:
                raise FormError("form field 'splitSpan': value is inferior to 1")
        span = value

    raw_unify = fields.get("splitUnify", "")
    unify = _bool_field(fields, "splitUnify")
    if raw_unify != "" and unify and mode != SPLIT_MODE_PAGES:
        raise FormError(
            f"form field 'splitUnify': unify is not available for split mode '{mode}'"
        )

    return SplitMode(mode=mode, span=span, unify=unify)


def parse_pdf_formats(fields: Mapping[str, str]) -> PdfFormats:
    """Build PdfFormats from the pdfa and pdfua fields."""
    return PdfFormats(pdfa=fields.get("pdfa", ""), pdfua=_bool_field(fields, "pdfua"))


def parse_pdf_metadata(
    fields: Mapping[str, str], mandatory: bool = False
) -> dict[str, Any] | None:
    """Decode the JSON object of the metadata field, if any."""
    value = _field(fields, "metadata", mandatory)
    if not value:
        return None
    try:
        metadata = json.loads(value)
    except json.JSONDecodeError as exc:
        raise FormError(f"form field 'metadata': unmarshal metadata: {exc}") from exc
    if metadata is not None and not isinstance(metadata, dict):
        raise FormError("form field 'metadata': unmarshal metadata: expected a JSON object")
    return metadata


def _wrap(message: str, exc: Exception) -> PdfEngineError:
    cls = type(exc) if isinstance(exc, PdfEngineError) else PdfEngineError
    return cls(f"{message}: {exc}")


def _require_pdfs(input_paths: Sequence[str]) -> list[str]:
    paths = [path for path in input_paths if os.path.splitext(path)[1].lower() == ".pdf"]
    if not paths:
        raise FormError("no form file found for extensions: [.pdf]")
    return paths


def merge_stub(
    ctx: Context, workspace: Workspace, engine: PdfEngine, input_paths: Sequence[str]
) -> str:
    """Merge the PDFs; a single input is returned as is."""
    if not input_paths:
        raise PdfEngineError("no input paths")
    if len(input_paths) == 1:
        return input_paths[0]

    output_path = workspace.generate_path(".pdf")
    try:
        engine.merge(ctx, list(input_paths), output_path)
    except PdfEngineError as exc:
        raise _wrap(f"merge {len(input_paths)} PDFs", exc) from exc
    return output_path


def split_pdf_stub(
    ctx: Context,
    workspace: Workspace,
    engine: PdfEngine,
    mode: SplitMode,
    input_paths: Sequence[str],
) -> list[str]:
    """Split each PDF, keeping the original file name in the results."""
    if mode == SplitMode():
        return list(input_paths)

    unified = mode.unify and mode.mode == SPLIT_MODE_PAGES
    output_paths: list[str] = []
    for input_path in input_paths:
        filename = os.path.basename(os.path.splitext(input_path)[0])
        output_dir = workspace.create_sub_directory(filename.replace(".", "_"))

        try:
            paths = engine.split(ctx, mode, input_path, output_dir)
        except PdfEngineError as exc:
            raise _wrap(f"split PDF '{input_path}'", exc) from exc

        for index, path in enumerate(paths):
            if unified:
                new_path = f"{output_dir}/{filename}.pdf"
            else:
                new_path = f"{output_dir}/{filename}_{index}.pdf"
            workspace.rename(path, new_path)
            output_paths.append(new_path)
            if unified:
                break

    return output_paths


def flatten_stub(ctx: Context, engine: PdfEngine, input_paths: Sequence[str]) -> None:
    """Flatten the annotations of each PDF in place."""
    for input_path in input_paths:
        try:
            engine.flatten(ctx, input_path)
        except PdfEngineError as exc:
            raise _wrap(f"flatten '{input_path}'", exc) from exc


def convert_stub(
    ctx: Context,
    workspace: Workspace,
    engine: PdfEngine,
    formats: PdfFormats,
    input_paths: Sequence[str],
) -> list[str]:
    """Convert each PDF to the formats; without formats, return the inputs."""
    if formats == PdfFormats():
        return list(input_paths)

    output_paths: list[str] = []
    for input_path in input_paths:
        output_path = workspace.generate_path(".pdf")
        try:
            engine.convert(ctx, formats, input_path, output_path)
        except PdfEngineError as exc:
            raise _wrap(f"convert '{input_path}'", exc) from exc
        output_paths.append(output_path)
    return output_paths


def write_metadata_stub(
    ctx: Context,
    engine: PdfEngine,
    metadata: Mapping[str, Any] | None,
    input_paths: Sequence[str],
) -> None:
    """Write the metadata into each PDF; without metadata, do nothing."""
    if not metadata:
        return
    for input_path in input_paths:
        try:
            engine.write_metadata(ctx, metadata, input_path)
        except PdfEngineError as exc:
            raise _wrap(f"write metadata into '{input_path}'", exc) from exc


def handle_merge(
    ctx: Context,
    workspace: Workspace,
    engine: PdfEngine,
    fields: Mapping[str, str],
    input_paths: Sequence[str],
) -> list[str]:
    """Merge the PDFs, then convert, write metadata and flatten as asked."""
    formats = parse_pdf_formats(fields)
    metadata = parse_pdf_metadata(fields, False)
    paths = _require_pdfs(input_paths)
    flatten = _bool_field(fields, "flatten")

    output_path = workspace.generate_path(".pdf")
    try:
        engine.merge(ctx, paths, output_path)
    except PdfEngineError as exc:
        raise _wrap("merge PDFs", exc) from exc

    output_paths = convert_stub(ctx, workspace, engine, formats, [output_path])
    write_metadata_stub(ctx, engine, metadata, output_paths)
    if flatten:
        flatten_stub(ctx, engine, output_paths)

    workspace.add_output_paths(*output_paths)
    return output_paths


def handle_split(
    ctx: Context,
    workspace: Workspace,
    engine: PdfEngine,
    fields: Mapping[str, str],
    input_paths: Sequence[str],
) -> list[str]:
    """Split the PDFs, then convert, write metadata and flatten as asked."""
    mode = parse_split_mode(fields, True)
    formats = parse_pdf_formats(fields)
    metadata = parse_pdf_metadata(fields, False)
    paths = _require_pdfs(input_paths)
    flatten = _bool_field(fields, "flatten")

    output_paths = split_pdf_stub(ctx, workspace, engine, mode, paths)
    converted = convert_stub(ctx, workspace, engine, formats, output_paths)
    write_metadata_stub(ctx, engine, metadata, converted)
    if flatten:
        flatten_stub(ctx, engine, converted)

    if mode != SplitMode() and formats != PdfFormats():
        # Keep the split naming.
        for converted_path, output_path in zip(converted, output_paths):
            workspace.rename(converted_path, output_path)

    workspace.add_output_paths(*output_paths)
    return output_paths


def handle_flatten(
    ctx: Context, workspace: Workspace, engine: PdfEngine, input_paths: Sequence[str]
) -> list[str]:
    """Flatten the PDFs in place."""
    paths = _require_pdfs(input_paths)
    flatten_stub(ctx, engine, paths)
    workspace.add_output_paths(*paths)
    return paths


def handle_convert(
    ctx: Context,
    workspace: Workspace,
    engine: PdfEngine,
    fields: Mapping[str, str],
    input_paths: Sequence[str],
) -> list[str]:
    """Convert the PDFs to the formats given by pdfa and pdfua."""
    formats = parse_pdf_formats(fields)
    paths = _require_pdfs(input_paths)

    if formats == PdfFormats():
        raise FormError(
            "no PDF formats",
            "Invalid form data: either 'pdfa' or 'pdfua' form fields must be provided",
        )

    output_paths = convert_stub(ctx, workspace, engine, formats, paths)
    if len(output_paths) > 1:
        # Several outputs end up in an archive: keep the original file names.
        for index, input_path in enumerate(paths):
            workspace.rename(output_paths[index], input_path)
            output_paths[index] = input_path

    workspace.add_output_paths(*output_paths)
    return output_paths


def handle_read_metadata(
    ctx: Context, engine: PdfEngine, input_paths: Sequence[str]
) -> dict[str, dict[str, Any]]:
    """Return the metadata of each PDF, keyed by file name."""
    paths = _require_pdfs(input_paths)
    result: dict[str, dict[str, Any]] = {}
    for input_path in paths:
        try:
            result[os.path.basename(input_path)] = engine.read_metadata(ctx, input_path)
        except PdfEngineError as exc:
            raise _wrap("read metadata", exc) from exc
    return result


def handle_write_metadata(
    ctx: Context,
    workspace: Workspace,
    engine: PdfEngine,
    fields: Mapping[str, str],
    input_paths: Sequence[str],
) -> list[str]:
    """Write the metadata field into each PDF."""
    metadata = parse_pdf_metadata(fields, True)
    paths = _require_pdfs(input_paths)
    write_metadata_stub(ctx, engine, metadata, paths)
    workspace.add_output_paths(*paths)
    return paths