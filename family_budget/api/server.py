"""
FastAPI server for the family budget backend.

Endpoints:
- /expenses: GET, POST, PUT and DELETE against the spreadsheet
- /notifications/basic, /notifications/test-expense, /notifications/send
- /health

The routes only translate HTTP to and from the flows in orchestrator.py;
all behaviour lives there.
"""

import json
from functools import lru_cache
from typing import Any, NamedTuple, Optional

import structlog
from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from family_budget.config import AppSettings
from family_budget.orchestrator import (
    ExpensesFlow,
    FlowResult,
    NotificationFlow,
    create_app_components,
)


logger = structlog.get_logger(__name__)


class AppComponents(NamedTuple):
    expenses: ExpensesFlow
    notifications: NotificationFlow


@lru_cache()
def get_components() -> AppComponents:
    """
    Build the flows once per process.

    Tests replace this dependency through app.dependency_overrides.
    """
    expenses, notifications, _ = create_app_components()
    return AppComponents(expenses, notifications)


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("request_body_not_json", path=request.url.path)
        return None


def _respond(result: FlowResult) -> Response:
    if isinstance(result.body, str):
        return PlainTextResponse(result.body, status_code=result.status_code)
    return JSONResponse(result.body, status_code=result.status_code)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    settings = settings or AppSettings()

    app = FastAPI(title="Family Budget API", version="1.0.0", debug=settings.debug_mode)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.api_route("/expenses", methods=["GET", "POST", "PUT", "DELETE"])
    async def expenses(
        request: Request,
        background_tasks: BackgroundTasks,
        components: AppComponents = Depends(get_components),
    ):
        body = None if request.method == "GET" else await _json_body(request)
        result = await components.expenses.handle(
            request.method,
            body,
            defer=background_tasks.add_task,
        )
        return _respond(result)

    @app.post("/notifications/basic")
    async def basic_notification(
        request: Request,
        components: AppComponents = Depends(get_components),
    ):
        result = await components.notifications.handle_basic(
            request.headers.get("X-Notification-Secret"),
            await _json_body(request),
        )
        return _respond(result)

    @app.post("/notifications/test-expense")
    async def test_expense_notification(
        request: Request,
        components: AppComponents = Depends(get_components),
    ):
        result = await components.notifications.handle_test_expense(
            request.headers.get("X-Notification-Secret"),
        )
        return _respond(result)

    @app.post("/notifications/send")
    async def legacy_notification(
        request: Request,
        components: AppComponents = Depends(get_components),
    ):
        result = await components.notifications.handle_legacy(
            request.headers.get("x-secret-token"),
            await _json_body(request),
        )
        return _respond(result)

    return app


app = create_app()
