"""FastAPI application factory."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from ussd_voting.api.admin import router as admin_router
from ussd_voting.api.ussd_models import UssdRequest
from ussd_voting.app_logging import configure_logging
from ussd_voting.containers import AppContainer

INVALID_REQUEST = "END Invalid Request"
UNAVAILABLE = "END Service temporarily unavailable. Please try again."


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Service banner with a timestamp."""
        return {
            "service": "USSD Worker",
            "status": "healthy",
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/ussd", response_class=PlainTextResponse)
    async def ussd_webhook(request: Request) -> PlainTextResponse:
        """Handle one USSD gateway callback and return the CON/END body."""
        state_container: AppContainer = request.app.state.container
        started = time.perf_counter()
        body = UNAVAILABLE
        try:
            form = await request.form()
            ussd_request = UssdRequest.model_validate(dict(form))
            logger.info(
                "USSD incoming: %s | %s | text=%r",
                ussd_request.session_id,
                ussd_request.phone_number,
                ussd_request.text,
            )
            body = await _process(state_container, ussd_request)
        except Exception:
            logger.exception("USSD request failed")
            body = UNAVAILABLE
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "USSD completed in %.0fms | response=%r", duration_ms, body
        )
        return PlainTextResponse(body)

    return app


async def _process(container: AppContainer, ussd_request: UssdRequest) -> str:
    """Run the menu for one request and persist the session if it continues."""
    session_id = ussd_request.session_id
    phone_number = ussd_request.phone_number
    if not session_id or not phone_number:
        return INVALID_REQUEST

    async with container.session_locks.hold(session_id):
        sessions = container.session_service
        session = sessions.get_session(session_id)
        if session is None:
            session = sessions.create_session(session_id, phone_number)
        session.phone_number = phone_number

        reply, next_session = await container.menu_service.handle(
            session, ussd_request.latest_input()
        )
        if not reply.terminal:
            sessions.save_session(next_session)
        return reply.body
