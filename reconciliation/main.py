"""Uvicorn entry point for the reconciliation case API.

Run directly:        python -m reconciliation.main
Run via uvicorn:     uvicorn reconciliation.main:app --reload
"""

import uvicorn

from reconciliation.api.app import create_app
from reconciliation.core.config import Settings

app = create_app()


def main() -> None:
    """Start the API server with uvicorn."""
    settings = Settings()
    uvicorn.run(
        "reconciliation.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
