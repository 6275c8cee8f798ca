"""Command-line entrypoint that serves the API with uvicorn."""

import uvicorn

from party_sessions.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "party_sessions.api.asgi:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
