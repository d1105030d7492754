"""Channel-agnostic error classification for user-facing messages."""

import asyncio
import httpx

from ..llm.provider import (
    LLMRateLimitError,
    LLMAuthError,
    LLMBadRequestError,
    LLMEmptyResponseError,
    LLMResponseFormatError,
)
from ..store.github import AppendConflict, StoreConflict, StoreResponseError


class DanglingReferenceError(Exception):
    """The model named a day that is not among the files it was shown."""

    def __init__(self, date_key: str):
        super().__init__(f"No recent moments file for {date_key}")
        self.date_key = date_key


def classify_error(e: Exception) -> str:
    """Classify any exception into a user-friendly message.

    Returns a short string suitable for sending directly to the user.
    """
    # 1-5: Typed LLM exceptions
    if isinstance(e, LLMRateLimitError):
        return "Rate limited by the AI provider. Please wait a moment and try again."
    if isinstance(e, LLMAuthError):
        return "AI authentication error. The API key may need to be refreshed."
    if isinstance(e, LLMBadRequestError):
        return "The AI provider rejected the request."
    if isinstance(e, LLMEmptyResponseError):
        return "The AI returned an empty response. Please try again."
    if isinstance(e, LLMResponseFormatError):
        return "The AI returned something I couldn't understand. Please try again."

    # 6-9: Content store
    if isinstance(e, AppendConflict):
        return (
            "Today's moments file changed while I was saving, so nothing was written. "
            "Please send your moment again."
        )
    if isinstance(e, StoreConflict):
        return (
            "The file changed on GitHub since I read it, so nothing was written. "
            "Please send the instruction again."
        )
    if isinstance(e, StoreResponseError):
        return "GitHub returned an unexpected response. Please try again."
    if isinstance(e, DanglingReferenceError):
        return f"I couldn't find a recent moments file for {e.date_key}, so nothing was changed."

    # 10: httpx HTTP status errors (GitHub, AI provider after retries)
    if isinstance(e, httpx.HTTPStatusError):
        code = e.response.status_code
        host = e.request.url.host if e.request else "remote service"
        if code == 429:
            return f"Rate limited by {host}. Please wait a moment and try again."
        if code in (401, 403):
            return f"Authentication error from {host}. Check the configured token."
        if code == 404:
            return f"{host} returned 404. Check the repository settings."
        if 500 <= code < 600:
            return f"{host} is having server issues. Please try again later."
        return f"{host} returned HTTP {code}. Please try again later."

    # 11-12: Network / timeout errors
    if isinstance(e, httpx.ConnectError):
        return "Cannot connect to a remote service. Please check connectivity and try again."
    if isinstance(e, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "Request timed out. Please try again."

    # 13: Fallback with the type name
    type_name = type(e).__name__
    return f"Something went wrong ({type_name}). Check logs for details."
