"""
Chat Command Handler

Turns chat messages into replies. The handler knows nothing about the
transport: it takes text, documents or mini-app payloads and returns a
BotReply. The Telegram webhook in the API package is one caller.

Commands:
    /start, /report [date], /saldo [date], /budget [show|reset|<amount>],
    /csv, /export, /help

Invalid date arguments fall back to today. CSV documents are validated
as a whole and appended; nothing is written if any row is bad.
"""

import json
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from expense_tracker.audit import AuditLogger
from expense_tracker.config import BudgetSettings
from expense_tracker.models.transaction import Transaction, format_amount
from expense_tracker.orchestrator import IMPORT_APPEND, ExpenseFlow, ReportFlow
from expense_tracker.services.storage import PersistenceError
from expense_tracker.validation import ValidationError


logger = structlog.get_logger(__name__)

SOURCE = "bot"
EXPORT_FILENAME = "expenses.csv"
CURRENCY = "RUB"


class BotDocument(BaseModel):
    """A file attached to a reply."""
    name: str
    content: bytes


class BotReply(BaseModel):
    """What the bot sends back for one incoming message."""
    text: str
    document: Optional[BotDocument] = None
    button_url: Optional[str] = Field(
        default=None,
        description="Mini app URL offered as an inline button"
    )


def _money(value: Decimal) -> str:
    return f"{format_amount(value)} {CURRENCY}"


HELP_TEXT = """🤖 Expense Tracker Help

Commands:
• /start - Welcome message and mini app
• /report - Get today's spending summary
• /report YYYY-MM-DD - Get spending summary for a specific date
• /saldo - Show today's saldo/allowance
• /saldo YYYY-MM-DD - Saldo for a specific date
• /budget - Show current monthly budget and how it's sourced
• /budget <amount> - Set runtime budget override (resets on restart)
• /budget reset - Reset override to the configured value
• /csv - Upload your expense data
• /export - Download all expenses as CSV
• /help - This help message"""

CSV_INSTRUCTIONS = """📁 CSV Upload Instructions:

1. Your CSV file must have this exact header:
   Date,Category,Description,Amount

2. Date format: YYYY-MM-DD
3. Amount should be a number (e.g., 100.50)
4. Description is optional

Example:
Date,Category,Description,Amount
2024-01-15,Food,Lunch,500.00
2024-01-15,Transport,Bus,50.00

Send your CSV file and I'll validate and import it!"""

UNKNOWN_TEXT = "❓ Unknown command. Type /help for available commands."
BUDGET_USAGE = "Usage: /budget | /budget <amount> | /budget reset"


class BotCommandHandler:
    """Dispatches chat input to the flows and formats the replies."""

    def __init__(
        self,
        expense_flow: ExpenseFlow,
        report_flow: ReportFlow,
        budget: BudgetSettings,
        audit_logger: Optional[AuditLogger] = None,
        mini_app_url: Optional[str] = None,
    ):
        self._expense_flow = expense_flow
        self._report_flow = report_flow
        self._budget = budget
        self._audit_logger = audit_logger or AuditLogger()
        self._mini_app_url = mini_app_url

        self._commands = {
            "start": self.handle_start,
            "report": self.handle_report,
            "saldo": self.handle_saldo,
            "budget": self.handle_budget,
            "csv": self.handle_csv,
            "export": self.handle_export,
            "help": self.handle_help,
        }

    def handle_text(self, text: str) -> BotReply:
        """Route a text message to its command."""
        parts = (text or "").split()
        if not parts or not parts[0].startswith("/"):
            return BotReply(text=UNKNOWN_TEXT)

        # "/report@SomeBot 2024-01-01" addresses a specific bot in groups
        command = parts[0][1:].split("@", 1)[0].lower()
        handler = self._commands.get(command)
        if handler is None:
            return BotReply(text=UNKNOWN_TEXT)

        logger.info("bot_command", command=command, args=len(parts) - 1)
        return handler(parts[1:])

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------

    def handle_start(self, args: list[str]) -> BotReply:
        today = self._report_flow.today()
        text = (
            "Welcome to the Expense Tracker! 🎉\n\n"
            "Budget settings:\n"
            f"• Monthly budget: {_money(self._budget.current)}\n"
            f"• Daily allowance this month ({today.strftime('%b %Y')}): "
            f"{_money(self._report_flow.daily_allowance_this_month(today))}\n\n"
            "Available commands:\n"
            "/start  - Show this message\n"
            "/report - Daily spending summary (use /report YYYY-MM-DD for a specific day)\n"
            "/saldo  - Today's saldo/allowance (also /saldo YYYY-MM-DD)\n"
            "/budget - Show or set monthly budget (e.g. /budget 15000, /budget reset)\n"
            "/csv    - Upload your CSV file\n"
            "/export - Download full CSV\n"
            "/help   - Help"
        )
        if self._mini_app_url:
            text += "\n\nTo add expenses, use the mini app by clicking the button below."
        return BotReply(text=text, button_url=self._mini_app_url)

    def _reference_date(self, args: list[str]) -> date:
        return self._report_flow.resolve_date(args[0] if args else None)

    def handle_report(self, args: list[str]) -> BotReply:
        report, _ = self._report_flow.daily_report(self._reference_date(args), source=SOURCE)

        lines = [
            f"📊 {report.date.isoformat()}",
            f"💰 Today: {_money(report.spend_today)}",
            f"🎯 Saldo today: {_money(report.saldo)}",
        ]
        if report.tomorrow_allowance is not None:
            lines.append(f"➡️ Tomorrow: {_money(report.tomorrow_allowance)}")
        if report.is_on_track:
            lines.append("✅ On track.")
        else:
            lines.append("⚠️ Over track for the month.")

        return BotReply(text="\n".join(lines), document=self._export_document())

    def handle_saldo(self, args: list[str]) -> BotReply:
        report = self._report_flow.saldo(self._reference_date(args), source=SOURCE)

        lines = [
            f"📅 {report.date.isoformat()}",
            f"💳 Spent today: {_money(report.spend_today)}",
            f"🎯 Allowed so far (cycle): {_money(report.allowed_cumulative)}",
            f"💸 Saldo today: {_money(report.saldo)}",
        ]
        if report.tomorrow_allowance is not None:
            lines.append(f"➡️ Tomorrow allowance: {_money(report.tomorrow_allowance)}")
        return BotReply(text="\n".join(lines))

    def handle_budget(self, args: list[str]) -> BotReply:
        if not args or (len(args) == 1 and args[0].lower() == "show"):
            source = self._budget.source
            if self._budget.is_overridden:
                source += " (resets on restart)"
            return BotReply(text=(
                f"Current monthly budget: {_money(self._budget.current)}\n"
                f"Source: {source}\n\n"
                "To change: /budget <amount> (e.g., /budget 15000)\n"
                "To reset to the configured value: /budget reset"
            ))

        if len(args) != 1:
            return BotReply(text=BUDGET_USAGE)

        if args[0].lower() == "reset":
            value = self._budget.reset()
            self._audit_logger.log_budget_reset(amount=format_amount(value), source=SOURCE)
            return BotReply(text=f"✅ Reset. Using configured MONTHLY_BUDGET_RUB = {_money(value)}")

        try:
            value = self._budget.override(Decimal(args[0].replace(",", ".")))
        except (InvalidOperation, ValueError):
            return BotReply(text="❌ Invalid amount. Use: /budget 15000")

        self._audit_logger.log_budget_overridden(amount=format_amount(value), source=SOURCE)
        return BotReply(text=f"✅ Monthly budget set to {_money(value)} (runtime override)")

    def handle_csv(self, args: list[str]) -> BotReply:
        return BotReply(text=CSV_INSTRUCTIONS)

    def handle_export(self, args: list[str]) -> BotReply:
        return BotReply(text="📎 All expenses, newest first.", document=self._export_document())

    def handle_help(self, args: list[str]) -> BotReply:
        return BotReply(text=HELP_TEXT)

    def _export_document(self) -> BotDocument:
        content = self._expense_flow.export(source=SOURCE)
        return BotDocument(name=EXPORT_FILENAME, content=content.encode("utf-8"))

    # -------------------------------------------------------------------
    # Documents and mini app data
    # -------------------------------------------------------------------

    def handle_document(self, filename: str, content: bytes) -> BotReply:
        """Validate an uploaded CSV and append its rows."""
        if not (filename or "").lower().endswith(".csv"):
            return BotReply(text="❌ Please upload a CSV file (.csv extension)")

        try:
            result = self._expense_flow.import_csv(
                content,
                mode=IMPORT_APPEND,
                source=SOURCE,
                filename=filename,
            )
        except ValidationError as e:
            if len(e.issues) == 1 and e.issues[0].field in ("header", "file"):
                return BotReply(text=f"❌ {e.issues[0].message}")
            return BotReply(
                text=self._expense_flow.validator.get_user_friendly_summary(e.issues)
            )
        except PersistenceError:
            return BotReply(text="❌ Failed to save transactions")

        text = (
            f"✅ Successfully imported {len(result.transactions)} transactions!\n\n"
            f"💰 Total amount: {_money(result.total_amount)}"
        )
        if result.date_range:
            first, last = result.date_range
            text += f"\n📅 Date range: {first} to {last}"
        return BotReply(text=text)

    def handle_web_app_data(self, payload: str) -> BotReply:
        """Add an expense submitted from the mini app."""
        try:
            data = json.loads(payload)
        except (TypeError, ValueError):
            return BotReply(text="❌ Failed to parse web app data")

        try:
            transaction = self._expense_flow.add_expense(data, source=SOURCE)
        except ValidationError as e:
            return BotReply(text=f"❌ {e.first_message}")
        except PersistenceError:
            return BotReply(text="❌ Failed to save transaction")

        return BotReply(text=format_confirmation(transaction))


def format_confirmation(transaction: Transaction) -> str:
    """Confirmation text sent after an expense is added."""
    text = (
        "✅ Expense added!\n\n"
        f"📅 Date: {transaction.date}\n"
        f"🏷️ Category: {transaction.category}"
    )
    if transaction.description:
        text += f"\n📝 Description: {transaction.description}"
    text += f"\n💰 Amount: {_money(transaction.amount)}"
    return text
