# pdfrelay

pdfrelay is a library that drives the command-line PDF tools pdfcpu, PDFtk and
QPDF through one interface. When one engine fails, it moves on to the next. It
also has:

- form handlers for merge, split, flatten, convert and metadata operations;
- background delivery of results to webhook URLs, with retries;
- gauge metrics rendered in the Prometheus text format.

## Installation

```
pip install pdfrelay
```

To install the test tools as well:

```
pip install "pdfrelay[test]"
```

The engines run external binaries. Each engine reads the location of its
binary from an environment variable:

| Engine (module)           | Variable          |
|---------------------------|-------------------|
| `PdfCpu` (`pdfrelay.pdfcpu`) | `PDFCPU_BIN_PATH` |
| `PdfTk` (`pdfrelay.pdftk`)   | `PDFTK_BIN_PATH`  |
| `QPdf` (`pdfrelay.qpdf`)     | `QPDF_BIN_PATH`   |

`provision(environ=None)` reads the variable from `os.environ`, or from the
mapping you pass in. It raises `PdfEngineError` when the variable is not set.
`validate()` raises `PdfEngineError` when the binary path does not exist.
`debug()` runs the tool's version command and returns `{"version": ...}`.

## Engines

Every engine is a `pdfrelay.engine.PdfEngine` and has six methods:

- `merge`
- `split`
- `flatten`
- `convert`
- `read_metadata`
- `write_metadata`

Each method takes a `Context` as its first argument. A `Context` can be
cancelled with `cancel()`. You can also give it a deadline with
`Context(timeout=seconds)`.

Tools run in their own process group. The process is killed when the context
is done, and the call then raises `ContextDoneError`. A tool that cannot start,
or that exits with a non-zero status, raises `CommandError`.

```python
from pdfrelay.engine import Context, SplitMode
from pdfrelay.qpdf import QPdf

engine = QPdf()
engine.provision()   # reads QPDF_BIN_PATH
engine.validate()

ctx = Context(timeout=30)
engine.merge(ctx, ["a.pdf", "b.pdf"], "out.pdf")
engine.split(ctx, SplitMode(mode="pages", span="1-2", unify=True), "a.pdf", "parts")
```

What each engine supports:

| Operation | `PdfCpu` | `PdfTk` | `QPdf` |
|-----------|----------|---------|--------|
| merge | yes | yes | yes |
| split, `intervals` | yes | no | no |
| split, `pages` | yes | no | no |
| split, `pages` with unify | yes | yes | yes |
| flatten | no | no | yes, in place |

No engine supports `convert`, `read_metadata` or `write_metadata`.
Unsupported methods raise `MethodNotSupportedError`. Unsupported split modes
raise `SplitModeNotSupportedError`. All engine errors derive from
`PdfEngineError`.

`PdfCpu.split` returns the PDF files it finds in the output directory. They
are ordered by the number just before the file extension, so `x_2.pdf` comes
before `x_10.pdf`. The same ordering is available as
`pdfrelay.naturalsort.sort_by_digit_suffix(paths)`. Related helpers are
`digit_suffix_key` and `extract_number`.

## Combining engines

`pdfrelay.registry.PdfEngines` takes a list of engines and a
`PdfEnginesOptions`. The options choose which engines handle each operation,
and in which order. An empty list means all engines, in the order given. The
default options are:

| Operation      | Default engines          |
|----------------|--------------------------|
| merge          | qpdf, pdfcpu, pdftk      |
| split          | pdfcpu, qpdf, pdftk      |
| flatten        | qpdf                     |
| convert        | libreoffice-pdfengine    |
| read metadata  | exiftool                 |
| write metadata | exiftool                 |

The engines named `libreoffice-pdfengine` and `exiftool` are not part of this
package. With the default options, `validate()` therefore fails unless you
provide engines with those ids, or choose other names:

```python
from pdfrelay.pdfcpu import PdfCpu
from pdfrelay.pdftk import PdfTk
from pdfrelay.qpdf import QPdf
from pdfrelay.registry import PdfEngines, PdfEnginesOptions

options = PdfEnginesOptions(
    convert_engines=["qpdf"],
    read_metadata_engines=["qpdf"],
    write_metadata_engines=["qpdf"],
)

engines = PdfEngines()
engines.provision([PdfCpu(), PdfTk(), QPdf()], options)
engines.validate()            # raises on names that match no engine
print(engines.system_messages())

multi = engines.pdf_engine()  # a pdfrelay.multi.MultiPdfEngine
```

`MultiPdfEngine` tries its engines in turn and returns the first result that
succeeds. When every engine fails, it raises a `PdfEngineError` whose message
joins all the failures. It raises the same error when no engine is selected.
When the context is done, it raises `ContextDoneError` and tries no further
engine.

## Form handlers

`pdfrelay.routes` turns form fields (a mapping of strings) and uploaded file
paths into engine calls. Files are created inside a `Workspace`. A `Workspace`
uses a directory you give it, or creates a temporary one. Used as a context
manager, it removes a temporary directory on exit.

The handlers are:

| Handler | Form fields read |
|---------|------------------|
| `handle_merge` | `pdfa`, `pdfua`, `metadata`, `flatten` |
| `handle_split` | `splitMode`, `splitSpan`, `splitUnify` (the first two required), `pdfa`, `pdfua`, `metadata`, `flatten` |
| `handle_flatten` | none |
| `handle_convert` | `pdfa` or `pdfua`; one of them is required |
| `handle_read_metadata` | none; returns the metadata keyed by file name |
| `handle_write_metadata` | `metadata` (a JSON object), required |

Each handler that produces files returns their paths and adds them to
`Workspace.output_paths`. Only `.pdf` paths are used, and at least one is
required. Invalid form data raises `FormError`, whose `status_code` is 400.

The building blocks are also available on their own:

- parsing: `parse_split_mode`, `parse_pdf_formats`, `parse_pdf_metadata`;
- operations: `merge_stub`, `split_pdf_stub`, `flatten_stub`, `convert_stub`,
  `write_metadata_stub`.

## Webhooks

`pdfrelay.webhook.Webhook(options=WebhookOptions(...))` reads these request
headers:

- `Gotenberg-Webhook-Url`
- `Gotenberg-Webhook-Error-Url`
- `Gotenberg-Webhook-Method`
- `Gotenberg-Webhook-Error-Method`
- `Gotenberg-Webhook-Extra-Http-Headers`

`Webhook.handle(headers, process, output_filename=None)` returns `None` in two
cases: when the feature is disabled, or when no webhook URL is given. In that
case the caller carries on as usual. Otherwise it checks the headers and
starts a thread. The thread runs `process()`, which must return the path of
the output file, and returns at once with that thread.

The output file is uploaded to the webhook URL with:

- its detected content type;
- its length;
- a trace header;
- a `Content-Disposition` attachment name, unless the extra headers set one.

If anything fails, a JSON body `{"status": ..., "message": ...}` is sent to
the error URL instead.

Header problems raise `WebhookRequestError`, which carries a `status_code`:

- 400: a missing error URL, a method other than POST, PATCH or PUT, or extra
  headers that are not a JSON object of strings;
- 403: a URL rejected by the allow or deny expressions.

The helpers `filter_url`, `method_from_header` and `parse_extra_headers` are
public.

`pdfrelay.webhook_client.WebhookClient` sends the requests. It retries
connection errors, status 429 and 5xx responses other than 501. The wait
between retries grows exponentially between `retry_min_wait` and
`retry_max_wait`, and follows `Retry-After` when present. It raises once the
retries are used up, or when the final status is 400 or above.

## Metrics

`pdfrelay.prometheus.Prometheus` gathers `Metric` objects from providers.
Each provider is an object with a `metrics()` method.

- `validate()` rejects an empty namespace, metrics without a name or a `read`
  function, and duplicate names.
- `start()` samples every metric in a background thread at
  `PrometheusOptions.interval` seconds, and `stop()` ends the sampling.
- `collect()` reads every metric once.
- `render()` returns the gauges, named `<namespace>_<name>`, in the Prometheus
  text exposition format.

## What this package does not do

- It has no HTTP server and no command-line program. The form handlers, the
  webhook handling and `Prometheus.render` are functions for an application
  to call from its own web framework.
- None of its engines converts PDFs to PDF/A or PDF/UA, or reads or writes
  metadata. Those operations need an engine you provide that implements
  `PdfEngine`.