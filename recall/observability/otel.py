"""OpenTelemetry + Prometheus fallback wiring for Session Recall."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from recall import config

logger = logging.getLogger("recall.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_ingestion_counter: Any | None = None
_ingestion_latency_hist: Any | None = None
_parser_failure_counter: Any | None = None
_search_counter: Any | None = None
_search_results_hist: Any | None = None
_tokens_counter: Any | None = None

_prom_enabled = False
_prom_ingestion_counter: Any | None = None
_prom_ingestion_latency_hist: Any | None = None
_prom_parser_failure_counter: Any | None = None
_prom_search_counter: Any | None = None
_prom_search_results_hist: Any | None = None
_prom_tokens_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _prom_labels(**labels: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in labels.items()}


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _ingestion_counter, _ingestion_latency_hist, _parser_failure_counter
    global _search_counter, _search_results_hist, _tokens_counter
    global _prom_enabled
    global _prom_ingestion_counter, _prom_ingestion_latency_hist, _prom_parser_failure_counter
    global _prom_search_counter, _prom_search_results_hist, _prom_tokens_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (RECALL_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "session-recall"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "recall",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("recall")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("recall")

    _ingestion_counter = meter.create_counter(
        "recall_ingestion_events_total",
        unit="1",
        description="Count of session sync operations by outcome",
    )
    _ingestion_latency_hist = meter.create_histogram(
        "recall_ingestion_latency_ms",
        unit="ms",
        description="Latency for parsing and storing one session",
    )
    _parser_failure_counter = meter.create_counter(
        "recall_parser_failures_total",
        unit="1",
        description="Count of transcripts no parser could read",
    )
    _search_counter = meter.create_counter(
        "recall_searches_total",
        unit="1",
        description="Count of ranking pipeline runs",
    )
    _search_results_hist = meter.create_histogram(
        "recall_search_results",
        unit="1",
        description="Number of sessions returned per search",
    )
    _tokens_counter = meter.create_counter(
        "recall_tokens_total",
        unit="1",
        description="Token totals by model observed while syncing sessions",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_ingestion_counter = Counter(
                "recall_ingestion_events_total",
                "Count of session sync operations by outcome",
                ["source", "result"],
            )
            _prom_ingestion_latency_hist = Histogram(
                "recall_ingestion_latency_ms",
                "Latency for parsing and storing one session",
                ["source", "result"],
            )
            _prom_parser_failure_counter = Counter(
                "recall_parser_failures_total",
                "Count of transcripts no parser could read",
                ["parser"],
            )
            _prom_search_counter = Counter(
                "recall_searches_total",
                "Count of ranking pipeline runs",
                ["has_query"],
            )
            _prom_search_results_hist = Histogram(
                "recall_search_results",
                "Number of sessions returned per search",
                ["has_query"],
            )
            _prom_tokens_counter = Counter(
                "recall_tokens_total",
                "Token totals by model observed while syncing sessions",
                ["model", "direction"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    for provider in (_meter_provider, _trace_provider):
        try:
            if provider is not None:
                provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_ingestion(source: str, result: str, duration_ms: float) -> None:
    labels = {"source": source or "unknown", "result": result or "unknown"}
    if _enabled and _ingestion_counter is not None:
        _ingestion_counter.add(1, labels)
    if _enabled and _ingestion_latency_hist is not None:
        _ingestion_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_ingestion_counter is not None:
        _prom_ingestion_counter.labels(**_prom_labels(source=source, result=result)).inc()
    if _prom_enabled and _prom_ingestion_latency_hist is not None:
        _prom_ingestion_latency_hist.labels(**_prom_labels(source=source, result=result)).observe(
            max(0.0, float(duration_ms))
        )


def record_parser_failure(parser: str) -> None:
    labels = {"parser": parser or "unknown"}
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        _prom_parser_failure_counter.labels(**_prom_labels(parser=parser)).inc()


def record_search(has_query: bool, result_count: int) -> None:
    flag = "true" if has_query else "false"
    labels = {"has_query": flag}
    count = max(0, int(result_count))
    if _enabled and _search_counter is not None:
        _search_counter.add(1, labels)
    if _enabled and _search_results_hist is not None:
        _search_results_hist.record(count, labels)
    if _prom_enabled and _prom_search_counter is not None:
        _prom_search_counter.labels(has_query=flag).inc()
    if _prom_enabled and _prom_search_results_hist is not None:
        _prom_search_results_hist.labels(has_query=flag).observe(count)


def record_token_usage(*, model: str, token_input: int, token_output: int) -> None:
    model_label = (model or "unknown").strip() or "unknown"
    in_tokens = max(0, int(token_input))
    out_tokens = max(0, int(token_output))
    if _enabled and _tokens_counter is not None:
        if in_tokens > 0:
            _tokens_counter.add(in_tokens, {"model": model_label, "direction": "input"})
        if out_tokens > 0:
            _tokens_counter.add(out_tokens, {"model": model_label, "direction": "output"})
    if _prom_enabled and _prom_tokens_counter is not None:
        if in_tokens > 0:
            _prom_tokens_counter.labels(model=model_label, direction="input").inc(in_tokens)
        if out_tokens > 0:
            _prom_tokens_counter.labels(model=model_label, direction="output").inc(out_tokens)
