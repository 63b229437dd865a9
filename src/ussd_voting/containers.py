"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from ussd_voting.adapters.memory_session_repository import InMemorySessionRepository
from ussd_voting.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from ussd_voting.adapters.voting_backend_client import HttpxVotingBackendClient
from ussd_voting.config import Settings
from ussd_voting.services.backend import BackendGateway
from ussd_voting.services.menu import MenuService
from ussd_voting.services.sessions import (
    SessionLocks,
    SessionRepository,
    SessionService,
)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    backend_gateway: BackendGateway
    session_service: SessionService
    session_locks: SessionLocks
    menu_service: MenuService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    backend_client = HttpxVotingBackendClient.create(
        base_url=resolved_settings.voting_backend_url,
        api_key=resolved_settings.voting_backend_api_key,
        timeout=resolved_settings.voting_backend_timeout_seconds,
    )
    backend_gateway = BackendGateway(backend_client)
    session_service = SessionService(
        repository=_build_session_repository(resolved_settings),
        ttl_seconds=resolved_settings.ussd_session_ttl_seconds,
    )
    menu_service = MenuService(
        gateway=backend_gateway,
        shortcode=resolved_settings.ussd_shortcode,
    )

    async def close_resources() -> None:
        await backend_client.close()

    return AppContainer(
        settings=resolved_settings,
        backend_gateway=backend_gateway,
        session_service=session_service,
        session_locks=SessionLocks(enabled=resolved_settings.ussd_single_flight),
        menu_service=menu_service,
        close_resources=close_resources,
    )


def _build_session_repository(settings: Settings) -> SessionRepository:
    if settings.session_store == "memory":
        return InMemorySessionRepository()
    if settings.session_store != "supabase":
        raise ValueError(f"Unknown session store: {settings.session_store}")
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required")
    client = create_client(settings.supabase_url, settings.supabase_service_key)
    return SupabaseSessionRepository(client)
