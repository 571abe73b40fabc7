"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"matching_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"matching_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

OTP_REQUESTS = Counter(
	"matching_otp_requests_total",
	"One-time code issue attempts",
	["result"],
)

OTP_VERIFICATIONS = Counter(
	"matching_otp_verifications_total",
	"One-time code verification attempts",
	["result"],
)

IDENTITY_RESOLVED = Counter(
	"matching_identity_resolved_total",
	"Identity reconciliation outcomes",
	["flow", "outcome"],
)

NOTIFICATIONS_DISPATCHED = Counter(
	"matching_notifications_dispatched_total",
	"Outbound notification dispatch outcomes",
	["kind", "status"],
)

SMS_TRANSPORT = Counter(
	"matching_sms_transport_total",
	"SMS transport send results",
	["backend", "result"],
)

SMS_TRANSPORT_LATENCY = Histogram(
	"matching_sms_transport_seconds",
	"Latency of SMS provider calls",
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

REDIS_UP = Gauge("matching_redis_up", "Redis reachability (1 = up)")
POSTGRES_UP = Gauge("matching_postgres_up", "Postgres reachability (1 = up)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_otp_request(result: str) -> None:
	OTP_REQUESTS.labels(result=result).inc()


def inc_otp_verify(result: str) -> None:
	OTP_VERIFICATIONS.labels(result=result).inc()


def inc_identity_resolved(flow: str, outcome: str) -> None:
	IDENTITY_RESOLVED.labels(flow=flow, outcome=outcome).inc()


def inc_notification(kind: str, status: str) -> None:
	NOTIFICATIONS_DISPATCHED.labels(kind=kind, status=status).inc()


def inc_sms_transport(backend: str, result: str) -> None:
	SMS_TRANSPORT.labels(backend=backend, result=result).inc()


def observe_sms_latency(elapsed_seconds: float) -> None:
	SMS_TRANSPORT_LATENCY.observe(elapsed_seconds)


def mark_redis(ok: bool) -> None:
	REDIS_UP.set(1 if ok else 0)


def mark_postgres(ok: bool) -> None:
	POSTGRES_UP.set(1 if ok else 0)
