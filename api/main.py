"""
FastAPI application entrypoint.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import router
from facewear.config import Settings
from facewear.session import SessionController

logger = logging.getLogger(__name__)


def _log_load_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"[api] model load failed: {exc}")


def create_app(session: SessionController | None = None) -> FastAPI:
    """
    Build the app. The session's model is loaded in the background at startup
    (start is refused with 409 until it is ready) and the session is torn down
    at shutdown.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sess = app.state.session
        if sess is None:
            settings = Settings()
            logging.getLogger().setLevel(settings.LOG_LEVEL)
            sess = SessionController(settings)
            app.state.session = sess
        load_task = asyncio.create_task(sess.load_model())
        load_task.add_done_callback(_log_load_result)
        try:
            yield
        finally:
            if not load_task.done():
                load_task.cancel()
            sess.close()

    app = FastAPI(title="Sunglasses Live Overlay API", version="1.0.0", lifespan=lifespan)
    app.state.session = session
    app.include_router(router)

    @app.get("/health")
    def health() -> dict:
        """
        Health check endpoint.

        Returns:
            dict: Simple status payload.
        """
        return {"status": "ok"}

    return app


logging.basicConfig(level=logging.INFO)
app = create_app()
