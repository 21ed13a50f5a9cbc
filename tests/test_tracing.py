"""Spans around webhook reconciliation and the tracing switch."""

import asyncio

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from conftest import checkout_completed_body, make_reconciler, signature_header
from ukprofit.common import tracing
from ukprofit.services.webhook import service as webhook_service


def test_setup_tracing_is_skipped_when_disabled(monkeypatch):
    monkeypatch.setattr(tracing.settings, "tracing_enabled", False)
    assert tracing.setup_tracing("webhook") is None


def test_reconcile_span_carries_event_and_outcome(monkeypatch, store, add_request):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(webhook_service, "tracer", provider.get_tracer("test"))

    add_request("R1")
    body = checkout_completed_body("R1")
    asyncio.run(make_reconciler(store).handle_event(body.encode(), signature_header(body)))

    (span,) = exporter.get_finished_spans()
    assert span.name == "webhook.reconcile"
    assert span.attributes["stripe.event_id"] == "evt_1"
    assert span.attributes["stripe.event_type"] == "checkout.session.completed"
    assert span.attributes["webhook.outcome"] == "paid_notified"
    assert span.attributes["written_request.id"] == "R1"
