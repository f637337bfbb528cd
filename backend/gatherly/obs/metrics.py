"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"gatherly_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"gatherly_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

EVENTS_CREATED = Counter(
	"gatherly_events_created_total",
	"Events created",
)
EVENTS_ACCEPTED = Counter(
	"gatherly_events_accepted_total",
	"Events moved from pending to accepted",
)
EVENTS_DELETED = Counter(
	"gatherly_events_deleted_total",
	"Events deleted together with their dependents",
)
REGISTRATIONS_UPDATED = Counter(
	"gatherly_registrations_updated_total",
	"Registration transitions segmented by action",
	["action"],
)
POSTS_CREATED = Counter(
	"gatherly_posts_created_total",
	"Posts created",
	["scope"],
)
COMMENTS_CREATED = Counter(
	"gatherly_comments_created_total",
	"Comments created",
)
CASCADE_ROWS_DELETED = Counter(
	"gatherly_cascade_rows_deleted_total",
	"Rows removed by cascading deletes",
	["kind"],
)
LIKES_TOGGLED = Counter(
	"gatherly_likes_toggled_total",
	"Like toggles segmented by target and result",
	["target", "result"],
)
NOTIFICATIONS_PERSISTED = Counter(
	"gatherly_notifications_persisted_total",
	"In-app notifications written",
)
PUSH_DELIVERIES = Counter(
	"gatherly_push_deliveries_total",
	"Web push delivery attempts by outcome",
	["outcome"],
)
PUSH_DROPPED = Counter(
	"gatherly_push_dropped_total",
	"Push jobs dropped before delivery",
	["reason"],
)
PUSH_SUBSCRIPTIONS_PRUNED = Counter(
	"gatherly_push_subscriptions_pruned_total",
	"Push subscriptions removed after the endpoint reported gone",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_event_created() -> None:
	EVENTS_CREATED.inc()


def inc_event_accepted() -> None:
	EVENTS_ACCEPTED.inc()


def inc_event_deleted() -> None:
	EVENTS_DELETED.inc()


def inc_registration(action: str) -> None:
	REGISTRATIONS_UPDATED.labels(action=action).inc()


def inc_post_created(scope: str) -> None:
	POSTS_CREATED.labels(scope=scope).inc()


def inc_comment_created() -> None:
	COMMENTS_CREATED.inc()


def inc_cascade_deleted(kind: str, count: int = 1) -> None:
	if count > 0:
		CASCADE_ROWS_DELETED.labels(kind=kind).inc(count)


def inc_like_toggled(target: str, result: str) -> None:
	LIKES_TOGGLED.labels(target=target, result=result).inc()


def inc_notification_persisted() -> None:
	NOTIFICATIONS_PERSISTED.inc()


def push_delivery(outcome: str) -> None:
	PUSH_DELIVERIES.labels(outcome=outcome).inc()


def push_dropped(reason: str) -> None:
	PUSH_DROPPED.labels(reason=reason).inc()


def push_subscription_pruned() -> None:
	PUSH_SUBSCRIPTIONS_PRUNED.inc()
