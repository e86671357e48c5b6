# app/utils/request_logging.py
import logging
import time

logger = logging.getLogger("app.requests")


class RequestLoggingMiddleware:
    """
    ASGI middleware that logs every HTTP request with its status and duration.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        method = scope.get("method", "")
        path = scope.get("path", "")
        status_code_container = {"status": None}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                status_code_container["status"] = message.get("status", 0)
            await send(message)

        start = time.perf_counter()
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.perf_counter() - start
            logger.info(
                "%s %s -> %s (%.2f ms)",
                method,
                path,
                status_code_container["status"],
                duration * 1000,
            )
