"""
Entry point for the Family Budget backend.

Run locally with:

    python -m app.main

or point any ASGI server at `family_budget.api:app`.

Configuration comes from environment variables / .env (see
family_budget/config/settings.py). Missing Google Sheets settings are
reported at startup; missing Firebase settings only disable notifications.
"""

import logging
import os

import structlog
import uvicorn

from family_budget.api import app
from family_budget.config import get_settings, validate_all_settings


logger = structlog.get_logger(__name__)


def main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if get_settings().app.debug_mode else logging.INFO,
        format="%(message)s",
    )

    checks = validate_all_settings()
    for name in ("google_sheets", "firebase", "app"):
        if not checks.get(name):
            logger.warning("settings_invalid", section=name, error=checks.get(f"{name}_error"))

    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
    )


if __name__ == "__main__":
    main()
