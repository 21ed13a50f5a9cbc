"""Structured JSON logging with request/event context fields."""

import logging
import sys
from contextvars import ContextVar
from uuid import uuid4

from fastapi import FastAPI, Request
from pythonjsonlogger.json import JsonFormatter

from ukprofit.common.config import settings


REQUEST_ID_HEADER = "x-request-id"

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
event_id_ctx: ContextVar[str] = ContextVar("event_id", default="")
written_request_id_ctx: ContextVar[str] = ContextVar("written_request_id", default="")


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.request_id = request_id_ctx.get()
        record.event_id = event_id_ctx.get()
        record.written_request_id = written_request_id_ctx.get()
        return True


def configure_logging() -> None:
    """Configure root logger once per service process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(request_id)s %(event_id)s "
        "%(written_request_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("ukprofit")


def install_request_id(app: FastAPI) -> None:
    """Bind an inbound (or fresh) request id to every log line of the request."""

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
