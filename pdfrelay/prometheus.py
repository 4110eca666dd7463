"""Collection of module metrics as gauges, rendered in the Prometheus text format."""

from __future__ import annotations

import math
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal

METRICS_PATH = "/prometheus/metrics"


@dataclass
class Metric:
    """A value read periodically and exposed as a gauge."""

    name: str
    description: str = ""
    read: Callable[[], float] | None = None


@dataclass
class PrometheusOptions:
    """Settings of the metrics collection."""

    namespace: str = "gotenberg"
    interval: float = 1.0
    disable_route_logging: bool = False
    disable_collect: bool = False


def _format_value(value: float) -> str:
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    parts = Decimal(repr(value)).normalize().as_tuple()
    sign = "-" if parts.sign else ""
    digits = "".join(str(d) for d in parts.digits)
    point = parts.exponent + len(digits)
    exponent = point - 1
    if exponent < -4 or exponent >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        exp_sign = "-" if exponent < 0 else "+"
        return f"{sign}{mantissa}e{exp_sign}{abs(exponent):02d}"
    if point <= 0:
        body = "0." + "0" * (-point) + digits
    elif point >= len(digits):
        body = digits + "0" * (point - len(digits))
    else:
        body = digits[:point] + "." + digits[point:]
    return sign + body


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


class Prometheus:
    """Reads the metrics of the modules at an interval and renders them."""

    def __init__(self) -> None:
        self.options = PrometheusOptions()
        self.metrics: list[Metric] = []
        self._gauges: dict[str, tuple[Metric, float]] = {}
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._threads: list[threading.Thread] = []

    def provision(self, providers: Iterable, options: PrometheusOptions | None = None) -> None:
        """Gather the metrics of every provider, each having a metrics() method."""
        self.options = options or PrometheusOptions()
        self.metrics = []
        if self.options.disable_collect:
            return
        for provider in providers:
            self.metrics.extend(provider.metrics())

    def validate(self) -> None:
        if self.options.disable_collect:
            return
        if not self.options.namespace:
            raise ValueError("namespace must not be empty")
        seen: set[str] = set()
        for metric in self.metrics:
            if not metric.name:
                raise ValueError("metric name cannot be empty")
            if metric.read is None:
                raise ValueError(f"metric '{metric.name}' has nil read method")
            if metric.name in seen:
                raise ValueError(f"metric '{metric.name}' is already registered")
            seen.add(metric.name)

    def _full_name(self, metric: Metric) -> str:
        return "_".join(part for part in (self.options.namespace, metric.name) if part)

    def _register(self, metric: Metric) -> None:
        with self._lock:
            self._gauges.setdefault(self._full_name(metric), (metric, 0.0))

    def _set(self, metric: Metric, value: float) -> None:
        with self._lock:
            self._gauges[self._full_name(metric)] = (metric, float(value))

    def start(self) -> None:
        """Start one background reader per metric."""
        if self.options.disable_collect:
            return
        self._stopping.clear()
        for metric in self.metrics:
            self._register(metric)
            thread = threading.Thread(
                target=self._poll, args=(metric,), name=f"metric-{metric.name}", daemon=True
            )
            self._threads.append(thread)
            thread.start()

    def _poll(self, metric: Metric) -> None:
        while not self._stopping.is_set():
            self._set(metric, metric.read())
            self._stopping.wait(self.options.interval)

    def stop(self) -> None:
        self._stopping.set()
        for thread in self._threads:
            thread.join()
        self._threads = []

    def startup_message(self) -> str:
        if self.options.disable_collect:
            return "collect disabled"
        return "collecting metrics"

    def collect(self) -> dict[str, float]:
        """Read every metric once; return the values by full metric name."""
        if self.options.disable_collect:
            return {}
        values: dict[str, float] = {}
        for metric in self.metrics:
            value = float(metric.read())
            self._set(metric, value)
            values[self._full_name(metric)] = value
        return values

    def render(self) -> str:
        """Return the gauges in the Prometheus text exposition format."""
        with self._lock:
            gauges = sorted(self._gauges.items())
        lines = []
        for name, (metric, value) in gauges:
            lines.append(f"# HELP {name} {_escape_help(metric.description)}")
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {_format_value(value)}")
        return "".join(line + "\n" for line in lines)