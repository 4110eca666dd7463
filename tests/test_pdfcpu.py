import json
import shlex
import sys
import textwrap

import pytest

from pdfrelay.engine import (
    CommandError,
    Context,
    ContextDoneError,
    MethodNotSupportedError,
    PdfEngineError,
    PdfFormats,
    SplitMode,
    SplitModeNotSupportedError,
)
from pdfrelay.pdfcpu import PdfCpu


def make_tool(tmp_path, body=""):
    script = tmp_path / "tool.py"
    calls = tmp_path / "calls.json"
    script.write_text(
        "import json, pathlib, sys\n"
        "args = sys.argv[1:]\n"
        f"pathlib.Path({str(calls)!r}).write_text(json.dumps(args))\n"
        + textwrap.dedent(body)
    )
    wrapper = tmp_path / "tool"
    wrapper.write_text(
        f"#!/bin/sh\nexec {shlex.quote(sys.executable)} {shlex.quote(str(script))} \"$@\"\n"
    )
    wrapper.chmod(0o755)
    return str(wrapper), calls


def recorded(calls):
    return json.loads(calls.read_text())


def test_provision_requires_env():
    with pytest.raises(PdfEngineError, match="PDFCPU_BIN_PATH environment variable is not set"):
        PdfCpu().provision({})


def test_provision_and_validate(tmp_path):
    tool, _ = make_tool(tmp_path)
    engine = PdfCpu()
    engine.provision({"PDFCPU_BIN_PATH": tool})
    assert engine.bin_path == tool
    engine.validate()
    with pytest.raises(PdfEngineError, match="pdfcpu binary path does not exist"):
        PdfCpu(bin_path=str(tmp_path / "missing")).validate()


def test_merge_arguments(tmp_path):
    tool, calls = make_tool(tmp_path)
    result = PdfCpu(bin_path=tool).merge(Context(), ["a.pdf", "b.pdf"], "out.pdf")
    assert result is None
    assert recorded(calls) == ["merge", "out.pdf", "a.pdf", "b.pdf"]


def test_merge_failure(tmp_path):
    tool, _ = make_tool(tmp_path, "sys.stderr.write('boom')\nsys.exit(3)\n")
    with pytest.raises(CommandError, match="merge PDFs with pdfcpu.*boom"):
        PdfCpu(bin_path=tool).merge(Context(), ["a.pdf"], "out.pdf")


def test_merge_cancelled_context(tmp_path):
    tool, _ = make_tool(tmp_path)
    ctx = Context()
    ctx.cancel()
    with pytest.raises(ContextDoneError):
        PdfCpu(bin_path=tool).merge(ctx, ["a.pdf"], "out.pdf")


def test_split_intervals_sorted_outputs(tmp_path):
    tool, calls = make_tool(
        tmp_path,
        """
        out = pathlib.Path(args[4])
        for name in ("doc_10.pdf", "doc_2.pdf", "doc_1.PDF", "notes.txt"):
            (out / name).write_text("x")
        """,
    )
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    paths = PdfCpu(bin_path=tool).split(
        Context(), SplitMode(mode="intervals", span="1"), "in.pdf", str(out_dir)
    )
    assert recorded(calls) == ["split", "-mode", "span", "in.pdf", str(out_dir), "1"]
    assert paths == [
        str(out_dir / "doc_1.PDF"),
        str(out_dir / "doc_2.pdf"),
        str(out_dir / "doc_10.pdf"),
    ]


def test_split_pages_unify_uses_trim(tmp_path):
    tool, calls = make_tool(tmp_path)
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    result = PdfCpu(bin_path=tool).split(
        Context(), SplitMode(mode="pages", span="1-2", unify=True), "/x/in.pdf", str(out_dir)
    )
    assert result == []
    assert recorded(calls) == ["trim", "-pages", "1-2", "/x/in.pdf", str(out_dir / "in.pdf")]


def test_split_pages_uses_extract(tmp_path):
    tool, calls = make_tool(tmp_path)
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    result = PdfCpu(bin_path=tool).split(
        Context(), SplitMode(mode="pages", span="1-2"), "in.pdf", str(out_dir)
    )
    assert recorded(calls) == [
        "extract", "-mode", "page", "-pages", "1-2", "in.pdf", str(out_dir)
    ]
    assert result == []


def test_split_unknown_mode(tmp_path):
    with pytest.raises(SplitModeNotSupportedError, match="mode 'foo' with pdfcpu"):
        PdfCpu(bin_path="tool").split(Context(), SplitMode(mode="foo"), "in.pdf", str(tmp_path))


def test_unsupported_methods():
    engine = PdfCpu(bin_path="tool")
    ctx = Context()
    with pytest.raises(MethodNotSupportedError, match="flatten PDF with pdfcpu"):
        engine.flatten(ctx, "in.pdf")
    with pytest.raises(MethodNotSupportedError, match="convert PDF to"):
        engine.convert(ctx, PdfFormats(pdfa="PDF/A-1b"), "in.pdf", "out.pdf")
    with pytest.raises(MethodNotSupportedError, match="read PDF metadata with pdfcpu"):
        engine.read_metadata(ctx, "in.pdf")
    with pytest.raises(MethodNotSupportedError, match="write PDF metadata with pdfcpu"):
        engine.write_metadata(ctx, {"Title": "x"}, "in.pdf")


def test_debug_reads_version(tmp_path):
    tool, calls = make_tool(tmp_path, "print('pdfcpu: v0.9.1 dev')\nprint('commit: abc')\n")
    assert PdfCpu(bin_path=tool).debug() == {"version": "v0.9.1 dev"}
    assert recorded(calls) == ["version"]


def test_debug_without_version_line(tmp_path):
    tool, _ = make_tool(tmp_path, "print('something else')\n")
    assert PdfCpu(bin_path=tool).debug() == {"version": "Unable to determine pdfcpu version"}


def test_debug_failure(tmp_path):
    tool, _ = make_tool(tmp_path, "sys.exit(3)\n")
    assert "status 3" in PdfCpu(bin_path=tool).debug()["version"]