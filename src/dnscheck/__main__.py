"""Entry point for running the application directly."""

import uvicorn

from dnscheck.core.config import get_settings


def main():
    """Run the application."""
    settings = get_settings()

    uvicorn.run(
        "dnscheck.app:app",
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "warning",
    )


if __name__ == "__main__":
    main()
