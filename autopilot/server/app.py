"""FastAPI app - version banner and the GitHub package webhook."""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from autopilot import version_string
from autopilot.config import AppConfig
from autopilot.dispatcher import Dispatcher, build_dispatcher
from autopilot.logger import get_logger

logger = get_logger(__name__)


def create_app(config: AppConfig, dispatcher: Dispatcher | None = None) -> FastAPI:
    """Build the app. Raises ConfigError if the projects can't be registered."""
    dispatcher = dispatcher or build_dispatcher(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Serving %d project(s)", len(dispatcher.registry))
        yield
        if dispatcher.pending:
            logger.info("Waiting for %d redeploy(s) to finish", dispatcher.pending)
        await dispatcher.drain()

    app = FastAPI(title="autopilot", lifespan=lifespan)
    app.state.config = config
    app.state.dispatcher = dispatcher

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return version_string()

    @app.post("/api/webhooks/{token}/github")
    async def github_webhook(token: str, request: Request):
        """Always 200 with an empty body, whatever happened to the notification."""
        try:
            payload = await request.json()
        except Exception:
            payload = None
        outcome = request.app.state.dispatcher.dispatch(token, payload)
        logger.debug("Webhook outcome: %s", outcome.value)
        return Response(status_code=200)

    return app
