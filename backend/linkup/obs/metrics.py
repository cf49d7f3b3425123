"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"linkup_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"linkup_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"linkup_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"linkup_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

FRIEND_REQUESTS_SENT = Counter(
	"linkup_friend_requests_sent_total",
	"Friend request send attempts",
	["result"],
)

FRIEND_REQUESTS_RESOLVED = Counter(
	"linkup_friend_requests_resolved_total",
	"Friend requests accepted, declined or cancelled",
	["outcome"],
)

FRIENDSHIPS_ACCEPTED = Counter(
	"linkup_friendships_accepted_total",
	"Friendships accepted",
)

BLOCKS_TOTAL = Counter(
	"linkup_blocks_total",
	"Block operations",
	["action"],
)

CHATS_CREATED = Counter(
	"linkup_chats_created_total",
	"Chats created",
	["kind"],
)

MESSAGES_APPENDED = Counter(
	"linkup_messages_appended_total",
	"Messages appended to chat streams",
	["kind"],
)

STORE_TX_RETRIES = Counter(
	"linkup_store_tx_retries_total",
	"Optimistic store transactions retried after a concurrent write",
	["op"],
)

LIVE_SUBSCRIPTIONS = Gauge(
	"linkup_live_subscriptions_active",
	"Active live subscription handles",
)

LIVE_LISTENERS = Gauge(
	"linkup_live_listeners_active",
	"Active store listeners (one per distinct query key)",
)

LIVE_RETRIES = Counter(
	"linkup_live_retries_total",
	"Live listener reconnect attempts after store outages",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_friend_request_sent(result: str) -> None:
	FRIEND_REQUESTS_SENT.labels(result=result).inc()


def inc_friend_request_resolved(outcome: str) -> None:
	FRIEND_REQUESTS_RESOLVED.labels(outcome=outcome).inc()
	if outcome == "accepted":
		FRIENDSHIPS_ACCEPTED.inc()


def inc_block(action: str) -> None:
	BLOCKS_TOTAL.labels(action=action).inc()


def inc_chat_created(kind: str) -> None:
	CHATS_CREATED.labels(kind=kind).inc()


def inc_message_appended(kind: str) -> None:
	MESSAGES_APPENDED.labels(kind=kind).inc()


def inc_store_retry(op: str) -> None:
	STORE_TX_RETRIES.labels(op=op).inc()


def live_subscription_opened() -> None:
	LIVE_SUBSCRIPTIONS.inc()


def live_subscription_closed() -> None:
	LIVE_SUBSCRIPTIONS.dec()


def live_listener_started() -> None:
	LIVE_LISTENERS.inc()


def live_listener_stopped() -> None:
	LIVE_LISTENERS.dec()


def inc_live_retry() -> None:
	LIVE_RETRIES.inc()
