"""ASGI entrypoint for the party session scheduler."""

from party_sessions.api.app import create_app
from party_sessions.containers import build_container

app = create_app(build_container())
