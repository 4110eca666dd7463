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
from pdfrelay.qpdf import QPdf


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


def provisioned(tool):
    engine = QPdf()
    engine.provision({"QPDF_BIN_PATH": tool})
    return engine


def test_provision_requires_env():
    with pytest.raises(PdfEngineError, match="QPDF_BIN_PATH environment variable is not set"):
        QPdf().provision({})


def test_provision_sets_global_args(tmp_path):
    tool, _ = make_tool(tmp_path)
    engine = provisioned(tool)
    assert engine.bin_path == tool
    assert engine.global_args == ["--warning-exit-0"]
    engine.validate()


def test_validate_missing_binary(tmp_path):
    with pytest.raises(PdfEngineError, match="QPDF binary path does not exist"):
        QPdf(bin_path=str(tmp_path / "missing")).validate()


def test_merge_arguments(tmp_path):
    tool, calls = make_tool(tmp_path)
    result = provisioned(tool).merge(Context(), ["a.pdf", "b.pdf"], "out.pdf")
    assert result is None
    assert recorded(calls) == [
        "--empty", "--warning-exit-0", "--pages", "a.pdf", "b.pdf", "--", "out.pdf"
    ]


def test_merge_failure(tmp_path):
    tool, _ = make_tool(tmp_path, "sys.stderr.write('damaged')\nsys.exit(2)\n")
    with pytest.raises(CommandError, match="merge PDFs with QPDF.*damaged"):
        provisioned(tool).merge(Context(), ["a.pdf"], "out.pdf")


def test_split_pages_unify(tmp_path):
    tool, calls = make_tool(tmp_path)
    paths = provisioned(tool).split(
        Context(), SplitMode(mode="pages", span="2-4", unify=True), "/x/in.pdf", str(tmp_path)
    )
    expected = str(tmp_path / "in.pdf")
    assert paths == [expected]
    assert recorded(calls) == [
        "/x/in.pdf", "--warning-exit-0", "--pages", ".", "2-4", "--", expected
    ]


def test_split_modes_not_supported(tmp_path):
    engine = QPdf(bin_path="tool")
    with pytest.raises(SplitModeNotSupportedError, match="without unify with QPDF"):
        engine.split(Context(), SplitMode(mode="pages", span="1"), "in.pdf", str(tmp_path))
    with pytest.raises(SplitModeNotSupportedError, match="mode 'intervals' with QPDF"):
        engine.split(Context(), SplitMode(mode="intervals", span="1"), "in.pdf", str(tmp_path))


def test_flatten_arguments(tmp_path):
    tool, calls = make_tool(tmp_path)
    result = provisioned(tool).flatten(Context(), "in.pdf")
    assert result is None
    assert recorded(calls) == [
        "in.pdf",
        "--generate-appearances",
        "--flatten-annotations=all",
        "--replace-input",
        "--warning-exit-0",
    ]


def test_flatten_cancelled(tmp_path):
    tool, _ = make_tool(tmp_path)
    ctx = Context()
    ctx.cancel()
    with pytest.raises(ContextDoneError, match="flatten PDFs with QPDF"):
        provisioned(tool).flatten(ctx, "in.pdf")


def test_unsupported_methods():
    engine = QPdf(bin_path="tool")
    ctx = Context()
    with pytest.raises(MethodNotSupportedError, match="with QPDF"):
        engine.convert(ctx, PdfFormats(pdfa="PDF/A-2b"), "in.pdf", "out.pdf")
    with pytest.raises(MethodNotSupportedError, match="read PDF metadata with QPDF"):
        engine.read_metadata(ctx, "in.pdf")
    with pytest.raises(MethodNotSupportedError, match="write PDF metadata with QPDF"):
        engine.write_metadata(ctx, {}, "in.pdf")


def test_debug_first_line(tmp_path):
    tool, calls = make_tool(tmp_path, "print('qpdf version 11.9.0')\nprint('more')\n")
    assert QPdf(bin_path=tool).debug() == {"version": "qpdf version 11.9.0"}
    assert recorded(calls) == ["--version"]


def test_debug_missing_binary(tmp_path):
    version = QPdf(bin_path=str(tmp_path / "missing")).debug()["version"]
    assert "missing" in version