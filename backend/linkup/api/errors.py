"""Global error handlers: domain errors become HTTP responses carrying the request id."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from linkup.errors import (
	Blocked,
	Conflict,
	InvalidArgument,
	LinkupError,
	NotFound,
	StoreUnavailable,
	Unauthenticated,
)
from linkup.obs import logging as obs_logging

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
	(Unauthenticated, status.HTTP_401_UNAUTHORIZED),
	(NotFound, status.HTTP_404_NOT_FOUND),
	(InvalidArgument, status.HTTP_400_BAD_REQUEST),
	(Conflict, status.HTTP_409_CONFLICT),
	(Blocked, status.HTTP_403_FORBIDDEN),
	(StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: LinkupError) -> int:
	for error_type, code in _STATUS_BY_ERROR:
		if isinstance(exc, error_type):
			return code
	return status.HTTP_400_BAD_REQUEST


def get_request_id(request: Request, default: str = "unknown") -> str:
	rid = getattr(request.state, "request_id", None) or obs_logging.current_request_id()
	return rid or default


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(LinkupError)
	async def linkup_exc_handler(request: Request, exc: LinkupError):  # type: ignore[override]
		code = status_for(exc)
		if code >= 500:
			logger.warning("store unavailable", extra={"path": request.url.path, "reason": exc.reason})
		payload = {"detail": exc.reason, "request_id": get_request_id(request)}
		return JSONResponse(status_code=code, content=payload)

	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {"detail": "validation_error", "errors": exc.errors(), "request_id": get_request_id(request)}
		return JSONResponse(status_code=422, content=payload)
