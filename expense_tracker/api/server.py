"""
HTTP JSON API for the companion web form and the Telegram webhook.

All routes live under /expenses. Handlers are plain functions so FastAPI
runs them in its threadpool; the store lock serializes them.

Errors are returned as {"error": "..."} with 400 for rejected input and
500 for storage failures.
"""

from typing import Any, Callable, Optional

import structlog
from fastapi import APIRouter, FastAPI, File, Header, Query, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from expense_tracker import __version__
from expense_tracker.bot import TelegramUpdateDispatcher, format_confirmation
from expense_tracker.models.transaction import parse_iso_date
from expense_tracker.orchestrator import IMPORT_REPLACE, AppComponents
from expense_tracker.services.storage import PersistenceError
from expense_tracker.validation import ValidationError


logger = structlog.get_logger(__name__)

SOURCE = "api"
BOT_SOURCE = "bot"
WEBHOOK_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


class TransactionRequest(BaseModel):
    """Body of POST /expenses/transaction."""
    date: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Any] = None
    chat_id: Optional[int] = None


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_router(
    components: AppComponents,
    dispatcher: Optional[TelegramUpdateDispatcher] = None,
) -> APIRouter:
    """Build the /expenses routes over one set of app components."""
    router = APIRouter(prefix="/expenses")
    expense_flow = components.expense_flow
    report_flow = components.report_flow
    max_upload_bytes = components.settings.app.max_upload_size_bytes
    webhook_secret = components.settings.telegram.webhook_secret

    @router.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @router.get("/graph-data")
    def graph_data(
        date_from: Optional[str] = Query(None, alias="from"),
        date_to: Optional[str] = Query(None, alias="to"),
    ) -> dict:
        series = report_flow.graph_data(date_from, date_to, source=SOURCE)
        return series.to_dict()

    @router.get("/saldo")
    def saldo(date: Optional[str] = None):
        reference_date = None
        if date:
            try:
                reference_date = parse_iso_date(date)
            except ValueError:
                return _error(400, "Invalid date format. Expected YYYY-MM-DD")
        return report_flow.saldo(reference_date, source=SOURCE).to_dict()

    @router.post("/transaction")
    def add_transaction(body: TransactionRequest):
        payload = body.model_dump(exclude={"chat_id"})
        source = BOT_SOURCE if body.chat_id else SOURCE

        try:
            transaction = expense_flow.add_expense(payload, source=source)
        except ValidationError as e:
            return _error(400, e.first_message)
        except PersistenceError:
            if body.chat_id:
                return _error(500, "Failed to process transaction")
            return _error(500, "Failed to save transaction")

        if body.chat_id:
            # Mini app submission: the confirmation goes back to the chat
            return {
                "message": "Transaction added via Telegram",
                "reply": format_confirmation(transaction),
            }
        return {
            "message": "Transaction added successfully",
            "transaction": transaction.to_dict(),
        }

    @router.post("/upload-csv")
    def upload_csv(csv: Optional[UploadFile] = File(None)):
        if csv is None:
            try:
                expense_flow.reset(source=SOURCE)
            except PersistenceError:
                return _error(500, "Failed to save transactions")
            return {"message": "Data reset (empty upload)"}

        content = csv.file.read(max_upload_bytes + 1)
        if len(content) > max_upload_bytes:
            return _error(400, "File too large")

        try:
            result = expense_flow.import_csv(
                content,
                mode=IMPORT_REPLACE,
                source=SOURCE,
                filename=csv.filename,
            )
        except ValidationError as e:
            if len(e.issues) == 1 and e.issues[0].field in ("header", "file"):
                return _error(400, e.issues[0].message)
            return _error(
                400,
                "CSV validation failed",
                errors=[str(issue) for issue in e.issues],
            )
        except PersistenceError:
            return _error(500, "Failed to save transactions")

        if result.is_empty:
            return {"message": "Data reset (empty CSV)"}

        count = len(result.transactions)
        return {
            "message": f"Successfully imported {count} transactions",
            "count": count,
        }

    @router.get("/transactions")
    def transactions(date: Optional[str] = None) -> dict:
        rows = expense_flow.transactions(date)
        return {
            "transactions": [tx.to_dict() for tx in rows],
            "count": len(rows),
        }

    @router.get("/export.csv")
    def export() -> Response:
        return Response(
            content=expense_flow.export(source=SOURCE),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="expenses.csv"'},
        )

    @router.post("/telegram/webhook")
    def telegram_webhook(
        update: dict[str, Any],
        secret_token: Optional[str] = Header(None, alias=WEBHOOK_SECRET_HEADER),
    ):
        if webhook_secret and secret_token != webhook_secret:
            return _error(403, "Forbidden")
        if dispatcher is None:
            return {}
        return dispatcher.dispatch(update)

    return router


def create_app(
    components: AppComponents,
    dispatcher: Optional[TelegramUpdateDispatcher] = None,
    lifespan: Optional[Callable] = None,
) -> FastAPI:
    """
    Factory for the HTTP application.

    Args:
        components: Flows and settings from create_app_components()
        dispatcher: Telegram update dispatcher (webhook answers {} without one)
        lifespan: Optional lifespan context (the bootstrap runs backups there)
    """
    app = FastAPI(title="Expense Tracker", version=__version__, lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request format")

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        """Return a JSON 500 response for unhandled exceptions."""
        logger.exception(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            exception_type=type(exc).__name__,
        )
        components.audit_logger.log_error(
            error_type=type(exc).__name__,
            error_message=str(exc),
            details={"path": request.url.path},
        )
        return _error(500, "Internal Server Error")

    app.include_router(create_router(components, dispatcher))
    return app
