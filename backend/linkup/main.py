"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from linkup.api import chats, ops, profiles, social
from linkup.api.errors import install_error_handlers
from linkup.infra.redis import redis_client
from linkup.live.manager import SubscriptionManager
from linkup.live.sockets import LiveNamespace
from linkup.obs import logging as obs_logging
from linkup.obs import middleware as obs_middleware
from linkup.settings import settings

logger = logging.getLogger(__name__)

subscription_manager = SubscriptionManager()
live_namespace = LiveNamespace(subscription_manager)


@asynccontextmanager
async def lifespan(app: FastAPI):
	obs_logging.configure_logging()
	logger.info("linkup starting", extra={"env": settings.environment})
	try:
		yield
	finally:
		await live_namespace.shutdown()
		await subscription_manager.shutdown()
		try:
			await redis_client.aclose()
		except RedisError:
			logger.warning("redis close failed", exc_info=True)


app = FastAPI(title="Linkup Realtime Core", lifespan=lifespan)
install_error_handlers(app)
obs_middleware.install(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Use the same allowed origins for Socket.IO as for the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
sio.register_namespace(live_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

app.include_router(ops.router, tags=["ops"])
app.include_router(profiles.router, tags=["profile"])
app.include_router(social.router, tags=["social"])
app.include_router(chats.router, tags=["chat"])
