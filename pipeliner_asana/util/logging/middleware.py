"""
FastAPI middleware for Loguru logging
"""

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.routing import APIRoute
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

DELIVERY_ID_HEADERS = ("x-request-id", "x-delivery-id")
MAX_LOGGED_BODY = 1000


def resolve_delivery_id(request: Request) -> str:
    """Use the caller's request id when it sends one, otherwise mint one."""
    for header in DELIVERY_ID_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return uuid.uuid4().hex


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request and response, tagging all log lines with a delivery id.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        delivery_id = resolve_delivery_id(request)
        request.state.delivery_id = delivery_id
        client_host = request.client.host if request.client else "unknown"

        with logger.contextualize(delivery_id=delivery_id):
            logger.info(
                f"Request started: {request.method} {request.url.path} - Client: {client_host}"
            )

            try:
                response = await call_next(request)
            except Exception as e:
                process_time = time.time() - start_time
                logger.exception(
                    f"Request failed: {request.method} {request.url.path} - Error: {str(e)} - Duration: {process_time:.3f}s"
                )
                raise

            process_time = time.time() - start_time
            logger.info(
                f"Request completed: {request.method} {request.url.path} - Status: {response.status_code} - Duration: {process_time:.3f}s"
            )
            response.headers["X-Request-ID"] = delivery_id
            return response


class LoggingRoute(APIRoute):
    """
    Custom route class that logs request bodies at DEBUG level.
    """

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def custom_route_handler(request: Request) -> Response:
            try:
                req_body = await request.body()
                body_str = (
                    req_body.decode("utf-8", errors="replace") if req_body else None
                )
                # Keep webhook dumps readable
                if body_str and len(body_str) > MAX_LOGGED_BODY:
                    body_str = f"{body_str[:MAX_LOGGED_BODY]}... [truncated]"

                logger.debug(
                    f"API request: {request.method} {request.url.path}\n"
                    f"Query params: {request.query_params}\n"
                    f"Body: {body_str}"
                )
            except Exception as e:
                logger.warning(
                    f"Cannot log request body: {request.method} {request.url.path} - Error: {str(e)}"
                )

            start_time = time.time()
            response = await original_route_handler(request)
            process_time = time.time() - start_time

            logger.debug(
                f"API response: {request.method} {request.url.path} - Status: {response.status_code}\n"
                f"Duration: {process_time:.3f}s"
            )

            return response

        return custom_route_handler


def setup_fastapi_logging(app: FastAPI) -> FastAPI:
    """
    Add the logging middleware and the body-logging route class to an app.
    Must be called before any route is registered.

    Args:
        app: FastAPI application instance

    Returns:
        FastAPI application with logging configured
    """
    app.add_middleware(LoggingMiddleware)

    app.router.route_class = LoggingRoute

    return app
