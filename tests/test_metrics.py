"""Tests for metrics, request tracing and log redaction."""

import pytest

from agentstudio.logging import redact_secrets
from agentstudio.metrics import Histogram, MetricsRegistry, metrics, record_deploy, record_vendor_call


class TestMetricsEndpoint:
    """Tests for the /metrics endpoints."""

    def test_metrics_endpoint_returns_text(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]

    def test_metrics_json_endpoint(self, client):
        data = client.get("/metrics/json").json()
        assert "counters" in data
        assert "histograms" in data

    def test_requests_counted_by_route(self, client):
        client.get("/v1/agents/some-id", headers={"X-Owner-ID": "owner-a"})

        content = client.get("/metrics").text
        assert "agentstudio_http_requests_total" in content
        assert 'path="/v1/agents/{agent_id}"' in content

    def test_deploy_records_outcome(self, client):
        client.post(
            "/v1/deploy",
            data={
                "payload": '{"organization": {"name": "Acme"},'
                ' "agent": {"name": "Bot1", "triggerCode": "go"}}'
            },
            headers={"X-Owner-ID": "owner-a"},
        )

        content = client.get("/metrics").text
        assert 'agentstudio_deploys_total{outcome="succeeded"}' in content
        assert "agentstudio_vendor_calls_total" in content


class TestHistogram:
    """Tests for the Histogram class."""

    def test_observe_accumulates(self):
        hist = Histogram()
        hist.observe(0.01)
        hist.observe(0.02)
        hist.observe(0.03)
        assert hist.count == 3
        assert hist.sum == pytest.approx(0.06)

    def test_buckets_are_cumulative(self):
        hist = Histogram()
        hist.observe(0.03)
        hist.observe(0.3)
        assert hist.counts[0.05] == 1
        assert hist.counts[0.5] == 2
        assert hist.counts[0.01] == 0

    def test_render(self):
        hist = Histogram()
        hist.observe(0.01)
        lines = hist.render("deploy_seconds", 'outcome="ok"')
        assert 'deploy_seconds_bucket{le="+Inf",outcome="ok"} 1' in lines
        assert 'deploy_seconds_count{outcome="ok"} 1' in lines


class TestMetricsRegistry:
    """Tests for the MetricsRegistry class."""

    def test_counter_with_labels(self):
        registry = MetricsRegistry()
        registry.inc("calls_total", {"vendor": "ingestion"})
        registry.inc("calls_total", {"vendor": "activation"})
        registry.inc("calls_total", {"vendor": "ingestion"})

        counters = registry.get_stats()["counters"]["calls_total"]
        assert counters['vendor="ingestion"'] == 2
        assert counters['vendor="activation"'] == 1

    def test_prometheus_output(self):
        registry = MetricsRegistry()
        registry.inc("requests_total")
        registry.observe("request_duration", 0.1)

        output = registry.to_prometheus()
        assert "# TYPE requests_total counter" in output
        assert "requests_total 1" in output
        assert "# TYPE request_duration histogram" in output

    def test_reset(self):
        registry = MetricsRegistry()
        registry.inc("requests_total")
        registry.reset()
        assert registry.get_stats() == {"counters": {}, "histograms": {}}


class TestRecorders:
    def test_record_deploy_and_vendor_call(self):
        metrics.reset()
        record_deploy("vendor", 0.2)
        record_vendor_call("activation", "degraded")

        stats = metrics.get_stats()
        assert stats["counters"]["agentstudio_deploys_total"]['outcome="vendor"'] == 1
        assert (
            stats["counters"]["agentstudio_vendor_calls_total"][
                'outcome="degraded",vendor="activation"'
            ]
            == 1
        )
        assert stats["histograms"]["agentstudio_deploy_duration_seconds"][""]["count"] == 1


class TestLogging:
    def test_secrets_are_redacted(self):
        event = redact_secrets(None, "info", {"event": "x", "api_key": "k", "agent_id": "a"})
        assert event == {"event": "x", "api_key": "***", "agent_id": "a"}
