"""
Telegram Bot API client.

Text replies go back in the webhook response itself. This client covers
what a webhook response cannot carry: downloading uploaded CSV files and
sending CSV exports as documents.
"""

from typing import Any, Optional

import requests
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


logger = structlog.get_logger(__name__)


class TelegramError(Exception):
    """Telegram API call failed."""
    pass


class TelegramNetworkError(TelegramError):
    """The request never got a usable response."""
    pass


class TelegramClient:
    """Minimal synchronous client for the Bot API."""

    BASE_URL = "https://api.telegram.org/bot{token}/{method}"
    FILE_URL = "https://api.telegram.org/file/bot{token}/{path}"

    def __init__(
        self,
        token: str,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def send_document(self, chat_id: int, filename: str, content: bytes) -> dict[str, Any]:
        """Send a file to a chat."""
        return self._post(
            "sendDocument",
            data={"chat_id": chat_id},
            files={"document": (filename, content, "text/csv")},
        )

    def send_message(self, chat_id: int, text: str) -> dict[str, Any]:
        return self._post("sendMessage", data={"chat_id": chat_id, "text": text})

    def download_file(self, file_id: str) -> bytes:
        """Resolve a file_id and download its content."""
        result = self._post("getFile", data={"file_id": file_id})
        file_path = result.get("file_path")
        if not file_path:
            raise TelegramError(f"No file path for file {file_id}")

        url = self.FILE_URL.format(token=self.token, path=file_path)
        response = self._request("GET", url)
        if response.status_code != 200:
            raise TelegramError(f"File download failed with HTTP {response.status_code}")
        return response.content

    def _post(
        self,
        method: str,
        data: dict[str, Any],
        files: Optional[dict] = None,
    ) -> dict[str, Any]:
        url = self.BASE_URL.format(token=self.token, method=method)
        response = self._request("POST", url, data=data, files=files)

        try:
            response_data = response.json()
        except ValueError as e:
            raise TelegramNetworkError("Invalid JSON response") from e

        if not response_data.get("ok"):
            description = response_data.get("description", "Unknown error")
            logger.warning(
                "telegram_api_error",
                method=method,
                error_code=response_data.get("error_code"),
                description=description,
            )
            raise TelegramError(description)

        return response_data.get("result", {})

    @retry(
        retry=retry_if_exception_type(TelegramNetworkError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    def _request(self, http_method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(http_method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning("telegram_network_error", error=str(e))
            raise TelegramNetworkError(f"Request failed: {e}") from e
