"""Selection and ordering of the available PDF engines per method."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from pdfrelay.engine import PdfEngine, PdfEngineError
from pdfrelay.multi import MultiPdfEngine


@dataclass
class PdfEnginesOptions:
    """Engine names per method; an empty list means all engines."""

    merge_engines: list[str] = field(default_factory=lambda: ["qpdf", "pdfcpu", "pdftk"])
    split_engines: list[str] = field(default_factory=lambda: ["pdfcpu", "qpdf", "pdftk"])
    flatten_engines: list[str] = field(default_factory=lambda: ["qpdf"])
    convert_engines: list[str] = field(default_factory=lambda: ["libreoffice-pdfengine"])
    read_metadata_engines: list[str] = field(default_factory=lambda: ["exiftool"])
    write_metadata_engines: list[str] = field(default_factory=lambda: ["exiftool"])
    disable_routes: bool = False


def _format_list(names: Iterable[str]) -> str:
    return "[" + " ".join(names) + "]"


@dataclass
class PdfEngines:
    """Aggregates PDF engines and picks them, in order, for each method."""

    engines: list[PdfEngine] = field(default_factory=list)
    merge_names: list[str] = field(default_factory=list)
    split_names: list[str] = field(default_factory=list)
    flatten_names: list[str] = field(default_factory=list)
    convert_names: list[str] = field(default_factory=list)
    read_metadata_names: list[str] = field(default_factory=list)
    write_metadata_names: list[str] = field(default_factory=list)
    disable_routes: bool = False

    def provision(
        self, engines: Sequence[PdfEngine], options: PdfEnginesOptions | None = None
    ) -> None:
        options = options or PdfEnginesOptions()
        self.engines = list(engines)
        self.disable_routes = options.disable_routes
        default_names = [engine.id for engine in self.engines]

        def choose(names: Sequence[str]) -> list[str]:
            return list(names) if names else list(default_names)

        self.merge_names = choose(options.merge_engines)
        self.split_names = choose(options.split_engines)
        self.flatten_names = choose(options.flatten_engines)
        self.convert_names = choose(options.convert_engines)
        self.read_metadata_names = choose(options.read_metadata_engines)
        self.write_metadata_names = choose(options.write_metadata_engines)

    def _all_selections(self) -> list[list[str]]:
        return [
            self.merge_names,
            self.split_names,
            self.flatten_names,
            self.convert_names,
            self.read_metadata_names,
            self.write_metadata_names,
        ]

    def validate(self) -> None:
        """Raise when there is no engine or a selected engine does not exist."""
        if not self.engines:
            raise PdfEngineError("no PDF engine")

        available = [engine.id for engine in self.engines]
        missing: list[str] = []
        for names in self._all_selections():
            for name in names:
                if name not in available and name not in missing:
                    missing.append(name)

        if missing:
            raise PdfEngineError(
                f"non-existing PDF engine(s): {_format_list(missing)} - "
                f"available PDF engine(s): {_format_list(available)}"
            )

    def system_messages(self) -> list[str]:
        labels = [
            "merge",
            "split",
            "flatten",
            "convert",
            "read metadata",
            "write metadata",
        ]
        return [
            f"{label} engines - {' '.join(names)}"
            for label, names in zip(labels, self._all_selections())
        ]

    def _select(self, names: Sequence[str]) -> list[PdfEngine]:
        by_id: dict[str, PdfEngine] = {}
        for engine in self.engines:
            by_id.setdefault(engine.id, engine)
        return [by_id[name] for name in names if name in by_id]

    def pdf_engine(self) -> MultiPdfEngine:
        """Return an engine that follows the selected order for each method."""
        return MultiPdfEngine(
            merge_engines=self._select(self.merge_names),
            split_engines=self._select(self.split_names),
            flatten_engines=self._select(self.flatten_names),
            convert_engines=self._select(self.convert_names),
            read_metadata_engines=self._select(self.read_metadata_names),
            write_metadata_engines=self._select(self.write_metadata_names),
        )