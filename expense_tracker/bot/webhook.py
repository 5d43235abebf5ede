"""
Telegram update dispatch.

Takes one webhook update, routes it to the command handler and builds the
webhook response body. Text replies are returned as a `sendMessage`
method call in the response; attached documents are sent separately
through the TelegramClient when one is configured.

Telegram re-delivers an update when the webhook does not answer in time,
so recently seen update_ids are ignored.
"""

from collections import deque
from threading import Lock
from typing import Any, Optional

import structlog

from expense_tracker.bot.commands import BotCommandHandler, BotReply
from expense_tracker.bot.telegram import TelegramClient, TelegramError


logger = structlog.get_logger(__name__)

RECENT_UPDATES = 1000


class TelegramUpdateDispatcher:
    """Routes webhook updates to the command handler."""

    def __init__(
        self,
        handler: BotCommandHandler,
        client: Optional[TelegramClient] = None,
    ):
        self._handler = handler
        self._client = client
        self._seen: deque = deque(maxlen=RECENT_UPDATES)
        self._seen_lock = Lock()

    def _is_duplicate(self, update_id: Any) -> bool:
        if update_id is None:
            return False
        with self._seen_lock:
            if update_id in self._seen:
                return True
            self._seen.append(update_id)
        return False

    def dispatch(self, update: dict[str, Any]) -> dict[str, Any]:
        """
        Handle one update.

        Returns:
            The webhook response body: a sendMessage call, or {} when the
            update carries nothing to answer
        """
        if self._is_duplicate(update.get("update_id")):
            logger.info("telegram_update_duplicate", update_id=update.get("update_id"))
            return {}

        message = update.get("message")
        if not isinstance(message, dict):
            return {}

        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            return {}

        reply = self._reply_for(message)
        if reply is None:
            return {}

        if reply.document is not None:
            self._send_document(chat_id, reply)

        body: dict[str, Any] = {
            "method": "sendMessage",
            "chat_id": chat_id,
            "text": reply.text,
        }
        if reply.button_url:
            body["reply_markup"] = {
                "inline_keyboard": [[
                    {"text": "📱 Open Mini App", "url": reply.button_url},
                ]],
            }
        return body

    def _reply_for(self, message: dict[str, Any]) -> Optional[BotReply]:
        web_app_data = message.get("web_app_data")
        if isinstance(web_app_data, dict) and web_app_data.get("data"):
            return self._handler.handle_web_app_data(web_app_data["data"])

        document = message.get("document")
        if isinstance(document, dict):
            return self._handle_document(document)

        text = message.get("text")
        if text:
            return self._handler.handle_text(text)
        return None

    def _handle_document(self, document: dict[str, Any]) -> BotReply:
        filename = document.get("file_name") or ""
        if not filename.lower().endswith(".csv"):
            return self._handler.handle_document(filename, b"")

        if self._client is None or not document.get("file_id"):
            return BotReply(text="❌ Failed to download file")

        try:
            content = self._client.download_file(document["file_id"])
        except TelegramError as e:
            logger.warning("telegram_download_failed", filename=filename, error=str(e))
            return BotReply(text="❌ Failed to download file")

        return self._handler.handle_document(filename, content)

    def _send_document(self, chat_id: int, reply: BotReply) -> None:
        if self._client is None:
            logger.info("telegram_document_skipped", reason="no bot token configured")
            return
        try:
            self._client.send_document(chat_id, reply.document.name, reply.document.content)
        except TelegramError as e:
            logger.warning("telegram_send_document_failed", chat_id=chat_id, error=str(e))
