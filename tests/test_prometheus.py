import threading
import time

import pytest

from pdfrelay.prometheus import Metric, Prometheus, PrometheusOptions


class Provider:
    def __init__(self, *metrics):
        self._metrics = list(metrics)

    def metrics(self):
        return self._metrics


def _provisioned(*metrics, **options):
    prom = Prometheus()
    prom.provision([Provider(*metrics)], PrometheusOptions(**options))
    return prom


def test_provision_gathers_metrics_in_order():
    prom = Prometheus()
    prom.provision(
        [Provider(Metric("a", read=lambda: 1.0)), Provider(Metric("b", read=lambda: 2.0))]
    )
    assert [m.name for m in prom.metrics] == ["a", "b"]


def test_disabled_collect_skips_providers_and_validation():
    prom = _provisioned(Metric("", read=None), disable_collect=True)
    prom.validate()
    assert prom.metrics == []
    assert prom.startup_message() == "collect disabled"
    assert prom.collect() == {}


def test_startup_message_when_collecting():
    assert _provisioned().startup_message() == "collecting metrics"


def test_validate_rejects_empty_namespace():
    with pytest.raises(ValueError, match="namespace must not be empty"):
        _provisioned(namespace="").validate()


def test_validate_rejects_empty_name():
    with pytest.raises(ValueError, match="metric name cannot be empty"):
        _provisioned(Metric("", read=lambda: 0.0)).validate()


def test_validate_rejects_missing_read():
    with pytest.raises(ValueError, match="metric 'x' has nil read method"):
        _provisioned(Metric("x")).validate()


def test_validate_rejects_duplicates():
    with pytest.raises(ValueError, match="metric 'x' is already registered"):
        _provisioned(Metric("x", read=lambda: 0.0), Metric("x", read=lambda: 1.0)).validate()


def test_collect_and_render():
    prom = _provisioned(
        Metric("queue_size", "Current queue size", lambda: 1.5),
        Metric("active", "Active processes", lambda: 3),
    )
    prom.validate()

    assert prom.collect() == {"gotenberg_queue_size": 1.5, "gotenberg_active": 3.0}
    text = prom.render()
    assert text.splitlines() == [
        "# HELP gotenberg_active Active processes",
        "# TYPE gotenberg_active gauge",
        "gotenberg_active 3",
        "# HELP gotenberg_queue_size Current queue size",
        "# TYPE gotenberg_queue_size gauge",
        "gotenberg_queue_size 1.5",
    ]


def test_render_uses_exponent_for_large_values():
    prom = _provisioned(Metric("big", "Big", lambda: 1000000.0), namespace="ns")
    prom.collect()
    assert "ns_big 1e+06\n" in prom.render()


def test_render_is_empty_before_collecting():
    assert _provisioned(Metric("x", read=lambda: 1.0)).render() == ""


def test_start_polls_until_stopped():
    calls = []
    lock = threading.Lock()

    def read():
        with lock:
            calls.append(1)
            return float(len(calls))

    prom = _provisioned(Metric("ticks", "Ticks", read), interval=0.01)
    prom.start()
    deadline = time.monotonic() + 5
    while len(calls) < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    prom.stop()

    count = len(calls)
    assert count >= 3
    time.sleep(0.05)
    assert len(calls) == count
    assert f"gotenberg_ticks {count}\n" in prom.render()