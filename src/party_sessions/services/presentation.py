"""Discord payload builders for session posts and party messages."""

from party_sessions.domain.sessions import (
    PARTY_CAPACITY,
    RoleType,
    SessionRecord,
    SessionStatus,
    SessionWithParty,
)
from party_sessions.domain.timing import format_session_date_long

ROLE_LABELS: dict[RoleType, str] = {
    RoleType.GAME_MASTER: "Game Master",
    RoleType.TANK: "Tank",
    RoleType.HEALER: "Healer",
    RoleType.DPS: "DPS",
    RoleType.SUPPORT: "Support",
    RoleType.FACE: "Face",
}

_STATUS_COLORS: dict[SessionStatus, int] = {
    SessionStatus.SCHEDULED: 0x3B82F6,
    SessionStatus.FULL: 0xF59E0B,
    SessionStatus.ACTIVE: 0x10B981,
    SessionStatus.COMPLETED: 0x6B7280,
    SessionStatus.CANCELED: 0xEF4444,
}

_BUTTON_STYLE_PRIMARY = 1
_BUTTON_STYLE_SECONDARY = 2
_COMPONENT_ACTION_ROW = 1
_COMPONENT_BUTTON = 2

ROLE_BUTTON_PREFIX = "role:"


def session_link(session: SessionRecord) -> str:
    return (
        f"https://discord.com/channels/{session.guild_id}/"
        f"{session.campaign_id}/{session.id}"
    )


def scheduled_description(session: SessionRecord) -> str:
    when = format_session_date_long(session.date, session.timezone)
    return f"📅 **Scheduled for:** {when}"


def session_embed(
    session: SessionWithParty,
    description: str | None = None,
    capacity: int = PARTY_CAPACITY,
) -> dict[str, object]:
    """Build the embed describing a session and its party."""
    fields = []
    for role in RoleType:
        holders = [member.username for member in session.party if member.role is role]
        if not holders:
            continue
        fields.append(
            {"name": ROLE_LABELS[role], "value": ", ".join(holders), "inline": True}
        )
    return {
        "title": session.name,
        "description": description or scheduled_description(session),
        "color": _STATUS_COLORS[session.status],
        "fields": fields,
        "footer": {
            "text": f"{session.status.value} · Party {session.party_size}/{capacity}"
        },
    }


def role_buttons(status: SessionStatus) -> list[dict[str, object]]:
    """Role buttons for the public roles; only clickable while scheduled."""
    disabled = status is not SessionStatus.SCHEDULED
    buttons = [
        {
            "type": _COMPONENT_BUTTON,
            "style": _BUTTON_STYLE_SECONDARY if disabled else _BUTTON_STYLE_PRIMARY,
            "custom_id": f"{ROLE_BUTTON_PREFIX}{role.value}",
            "label": ROLE_LABELS[role],
            "disabled": disabled,
        }
        for role in RoleType
        if not role.is_exclusive
    ]
    return [{"type": _COMPONENT_ACTION_ROW, "components": buttons}]


def build_session_message(
    session: SessionWithParty,
    description: str | None = None,
    capacity: int = PARTY_CAPACITY,
) -> dict[str, object]:
    """Full message payload (embed + role buttons) for a session post."""
    return {
        "embeds": [session_embed(session, description, capacity)],
        "components": role_buttons(session.status),
    }


def canceled_description(session: SessionRecord, reason: str) -> str:
    return f"❌ **CANCELED** - {session.name}\n{reason}"


def reminder_message(
    session: SessionWithParty, timezone_name: str, capacity: int = PARTY_CAPACITY
) -> str:
    when = format_session_date_long(session.date, timezone_name)
    return (
        "⏰ **Session Reminder**\n\n"
        f"🎲 **[{session.name}]({session_link(session)})** starts in 1 hour!\n"
        f"📅 **Time:** {when}\n"
        f"🏰 **Channel:** <#{session.campaign_id}>\n"
        f"👥 **Party Size:** {session.party_size}/{capacity} members\n\n"
        "See you at the table! 🎯"
    )


def cancellation_message(
    session: SessionRecord, reason: str, timezone_name: str
) -> str:
    when = format_session_date_long(session.date, timezone_name)
    return (
        "❌ **Session Canceled**\n\n"
        f"🎲 **[{session.name}]({session_link(session)})** has been canceled.\n"
        f"📅 **Was scheduled for:** {when}\n"
        f"❗ **Reason:** {reason}\n\n"
        "We apologize for any inconvenience."
    )
