"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from party_sessions.adapters.discord_client import DiscordClient, HttpxDiscordClient
from party_sessions.adapters.supabase_party_repository import SupabasePartyRepository
from party_sessions.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from party_sessions.adapters.supabase_user_repository import SupabaseUserRepository
from party_sessions.config import Settings
from party_sessions.services.admin import AdminService
from party_sessions.services.notifications import NotificationService
from party_sessions.services.recovery import StartupReconciler
from party_sessions.services.roster import RoleSelectionService
from party_sessions.services.scheduler import SessionScheduler
from party_sessions.services.sessions import SessionService
from party_sessions.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    discord_client: DiscordClient
    user_service: UserService
    session_service: SessionService
    role_selection_service: RoleSelectionService
    scheduler: SessionScheduler
    reconciler: StartupReconciler
    admin_service: AdminService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    party_repository = SupabasePartyRepository(supabase_client)
    user_repository = SupabaseUserRepository(supabase_client)

    discord_client = HttpxDiscordClient.create(resolved_settings.discord_bot_token)
    user_service = UserService(
        user_repository, default_timezone=resolved_settings.default_timezone
    )
    notification_service = NotificationService(discord_client)
    scheduler = SessionScheduler(
        session_repository=session_repository,
        notification_service=notification_service,
        user_service=user_service,
    )
    session_service = SessionService(
        session_repository=session_repository,
        party_repository=party_repository,
        user_service=user_service,
        discord_client=discord_client,
        notification_service=notification_service,
        task_registry=scheduler,
        default_timezone=resolved_settings.default_timezone,
    )
    scheduler.bind_actions(session_service)
    role_selection_service = RoleSelectionService(
        session_repository=session_repository,
        party_repository=party_repository,
        lifecycle=session_service,
    )
    reconciler = StartupReconciler(
        session_repository=session_repository,
        task_registry=scheduler,
        actions=session_service,
    )
    admin_service = AdminService(session_service=session_service, scheduler=scheduler)

    async def close_resources() -> None:
        scheduler.shutdown()
        await discord_client.close()

    return AppContainer(
        settings=resolved_settings,
        discord_client=discord_client,
        user_service=user_service,
        session_service=session_service,
        role_selection_service=role_selection_service,
        scheduler=scheduler,
        reconciler=reconciler,
        admin_service=admin_service,
        close_resources=close_resources,
    )
