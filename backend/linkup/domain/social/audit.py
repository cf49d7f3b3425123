"""Audit helpers for friend requests, friendships and blocks."""

from __future__ import annotations

import logging
from typing import Dict

from redis.exceptions import RedisError

from linkup.infra.redis import redis_client
from linkup.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

FRIENDSHIP_EVENTS_STREAM = "x:friendships.events"


async def log_friend_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **fields}
	logger.info("friendship event %s", event, extra={"fields": payload})
	try:
		await redis_client.xadd(FRIENDSHIP_EVENTS_STREAM, payload, maxlen=10_000, approximate=True)
	except RedisError:
		logger.warning("failed to append friendship audit event %s", event, exc_info=True)


def inc_request_sent(result: str) -> None:
	obs_metrics.inc_friend_request_sent(result)


def inc_request_resolved(outcome: str) -> None:
	obs_metrics.inc_friend_request_resolved(outcome)


def inc_block(action: str) -> None:
	obs_metrics.inc_block(action)
