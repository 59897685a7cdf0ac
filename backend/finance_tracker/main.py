from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Literal

import structlog
from fastapi import FastAPI, Path, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .errors import FieldError, FinanceTrackerError, NotFound, Unauthorized, ValidationError
from .logs import configure_logging
from .persistence import get_persistence
from .schemas import (
    AccountCreate,
    AccountResponse,
    AccountUpdate,
    ApiErrorDetail,
    ApiErrorPayload,
    ApiErrorResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    DashboardResponse,
    EventCreate,
    EventResponse,
    EventUpdate,
    ExpenseBreakdownItem,
    GoalCreate,
    GoalProgressResponse,
    GoalResponse,
    GoalUpdate,
    HealthResponse,
    IncomeExpensePoint,
    LoginRequest,
    RegisterRequest,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    UserResponse,
)
from .services.dashboard import build_dashboard
from .services.demo import seed_demo_data
from .services.reports import expense_breakdown, goal_progress, income_expense_series, recommend_goal_status, timeframe_window
from .validation import field_errors, row_values

configure_logging(settings.log_level, settings.log_format)
logger = structlog.get_logger(__name__)

persistence = get_persistence()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.seed_demo_data:
        seed_demo_data(persistence)
    yield


app = FastAPI(
    title="Finance Tracker API",
    version="0.1.0",
    description="Accounts, transactions, goals, upcoming bills and the dashboard summary built from them.",
    lifespan=lifespan,
)


def build_error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[FieldError] | None = None,
) -> JSONResponse:
    payload = ApiErrorResponse(
        error=ApiErrorPayload(
            code=code,
            message=message,
            details=[ApiErrorDetail(field=d.field, message=d.message) for d in details or []],
        )
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    details = field_errors(errors, skip=("body", "query", "path"))
    if any(err.get("loc", ("body",))[0] in {"query", "path"} for err in errors):
        return build_error_response(status.HTTP_400_BAD_REQUEST, "INVALID_INPUT", "Invalid query or path parameter", details)
    return build_error_response(status.HTTP_400_BAD_REQUEST, ValidationError.code, "Invalid request payload", details)


@app.exception_handler(FinanceTrackerError)
async def domain_exception_handler(request: Request, exc: FinanceTrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    details = exc.details if isinstance(exc, ValidationError) else None
    return build_error_response(exc.status_code, exc.code, exc.message, details)


@app.get("/api/v1/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok")


@app.post("/api/v1/auth/register", response_model=UserResponse, status_code=201)
async def auth_register(payload: RegisterRequest) -> dict[str, Any]:
    return persistence.register_user(row_values(payload))


@app.post("/api/v1/auth/login", response_model=UserResponse)
async def auth_login(payload: LoginRequest) -> dict[str, Any]:
    user = persistence.authenticate_user(payload.username, payload.password)
    if user is None:
        raise Unauthorized("invalid username or password")
    return user


def register_entity_routes(kind: str, label: str, create_model, update_model, response_model) -> None:
    """List/create/update/delete routes for one user-owned entity kind."""
    repo = persistence.repository(kind)

    async def list_entities(userId: int = Query(ge=0)) -> list[dict[str, Any]]:
        return repo.list(userId)

    async def create_entity(payload: create_model) -> dict[str, Any]:
        return repo.create(row_values(payload))

    async def update_entity(payload: update_model, entity_id: int = Path(ge=0)) -> dict[str, Any]:
        row = repo.update(entity_id, row_values(payload, partial=True))
        if row is None:
            raise NotFound(label, entity_id)
        return row

    async def delete_entity(entity_id: int = Path(ge=0)) -> Response:
        if not repo.delete(entity_id):
            raise NotFound(label, entity_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    base = f"/api/v1/{kind}"
    app.add_api_route(base, list_entities, methods=["GET"], response_model=list[response_model], name=f"list_{kind}")
    app.add_api_route(base, create_entity, methods=["POST"], response_model=response_model, status_code=201, name=f"create_{kind}")
    app.add_api_route(
        f"{base}/{{entity_id}}",
        update_entity,
        methods=["PUT", "PATCH"],
        response_model=response_model,
        name=f"update_{kind}",
    )
    app.add_api_route(
        f"{base}/{{entity_id}}",
        delete_entity,
        methods=["DELETE"],
        status_code=204,
        response_class=Response,
        name=f"delete_{kind}",
    )


register_entity_routes("categories", "category", CategoryCreate, CategoryUpdate, CategoryResponse)
register_entity_routes("transactions", "transaction", TransactionCreate, TransactionUpdate, TransactionResponse)
register_entity_routes("goals", "goal", GoalCreate, GoalUpdate, GoalResponse)
register_entity_routes("events", "event", EventCreate, EventUpdate, EventResponse)
register_entity_routes("accounts", "account", AccountCreate, AccountUpdate, AccountResponse)


@app.get("/api/v1/goals/{goal_id}/progress", response_model=GoalProgressResponse)
async def get_goal_progress(goal_id: int = Path(ge=0)) -> GoalProgressResponse:
    goal = persistence.goals.get(goal_id)
    if goal is None:
        raise NotFound("goal", goal_id)
    return GoalProgressResponse(
        goalId=goal_id,
        percentage=goal_progress(goal),
        status=goal["status"],
        recommendedStatus=recommend_goal_status(goal, datetime.now(timezone.utc)),
    )


@app.get("/api/v1/dashboard", response_model=DashboardResponse)
async def get_dashboard(userId: int = Query(ge=0)) -> dict[str, Any]:
    summary = await build_dashboard(persistence, userId)
    return summary.as_payload()


@app.get("/api/v1/dashboard/expense-breakdown", response_model=list[ExpenseBreakdownItem])
async def get_expense_breakdown(
    userId: int = Query(ge=0),
    timeframe: Literal["this_month", "last_month", "last_3_months", "this_year"] = Query("this_month"),
) -> list[dict[str, Any]]:
    start, end = timeframe_window(timeframe, datetime.now(timezone.utc))
    transactions = persistence.transactions.list(userId)
    categories = persistence.categories.list(userId)
    return expense_breakdown(transactions, categories, start, end)


@app.get("/api/v1/dashboard/income-expense", response_model=list[IncomeExpensePoint])
async def get_income_expense(
    userId: int = Query(ge=0),
    months: int = Query(6, ge=1, le=24),
) -> list[dict[str, Any]]:
    transactions = persistence.transactions.list(userId)
    return income_expense_series(transactions, months, datetime.now(timezone.utc))
