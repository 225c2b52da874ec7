"""
User-facing error text.

Converts exceptions into the short messages shown in progress and status
events.
"""

import asyncio
import logging
from typing import Dict

from .exceptions import AutofillError, RetrievalError, RetryExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "request failed"


def describe_error(error: BaseException) -> str:
    """Human-readable one-liner for ``error``."""
    if isinstance(error, RetryExhaustedError) and error.last_error is not None:
        return describe_error(error.last_error)
    if isinstance(error, asyncio.TimeoutError):
        return "Request timed out."
    text = str(error).strip()
    if text:
        return text
    return type(error).__name__ or DEFAULT_MESSAGE


def format_user_friendly_error(error: BaseException) -> Dict:
    """
    Convert an exception into a structured description.

    Returns:
        {
            "message": str,      # text for the status channel
            "can_retry": bool,   # whether retrying later may help
            "technical": str,    # repr for logs
        }
    """
    can_retry = False
    if isinstance(error, RetryExhaustedError):
        can_retry = True
    elif isinstance(error, RetrievalError):
        can_retry = error.retryable
    elif isinstance(error, asyncio.TimeoutError):
        can_retry = True
    elif not isinstance(error, AutofillError):
        logger.debug(f"Unclassified error: {error!r}")

    return {
        "message": describe_error(error),
        "can_retry": can_retry,
        "technical": repr(error),
    }
