"""
Async client for the answering service (OpenAI Responses API + file_search).

One POST per batch. HTTP and transport failures are mapped onto the
RetrievalError hierarchy so the retry layer can tell transient failures
from fatal ones.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import aiohttp

from ..config import DEFAULT_API_BASE, Credentials
from ..exceptions import (
    AuthenticationError,
    InvalidModelOutputError,
    RateLimitedError,
    RequestRejectedError,
    RequestTimeoutError,
    RetrievalError,
    ServiceUnavailableError,
    TransportError,
)
from ..models import FieldDescriptor
from .parsing import answers_for, extract_output_text, parse_answer_object
from .prompts import build_payload

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 35.0


def error_detail(payload: Any) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str):
                return message.strip()
    return ""


def classify_http_error(status: int, payload: Any = None) -> RetrievalError:
    """Exception for a non-2xx response, with the server's detail appended."""
    if status in (401, 403):
        error_cls, message = AuthenticationError, "Authentication failed. Check your API key."
    elif status == 429:
        error_cls, message = RateLimitedError, "Rate limited by the answering service. Please retry shortly."
    elif status >= 500:
        error_cls, message = ServiceUnavailableError, "Answering service error. Please try again."
    else:
        error_cls, message = RequestRejectedError, f"Request failed with status {status}."

    detail = error_detail(payload)
    if detail:
        message = f"{message} {detail}"
    return error_cls(message, status=status)


class RetrievalClient:
    """
    Answers batches of form fields from the configured document store.

    Pass an existing ``aiohttp.ClientSession`` to share connections across
    calls; without one, each request opens and closes its own session.
    """

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = False

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
            self._owns_session = False

    @staticmethod
    def _headers(api_key: str, assistants_beta: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if assistants_beta:
            headers["OpenAI-Beta"] = "assistants=v2"
        return headers

    async def _send(self, session: aiohttp.ClientSession, method: str, url: str,
                    headers: Dict[str, str], json: Optional[Dict[str, Any]]) -> Tuple[int, Any]:
        async with session.request(method, url, headers=headers, json=json) as resp:
            try:
                payload = await resp.json(content_type=None)
            except ValueError:
                payload = None
            return resp.status, payload

    async def _request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Any]:
        """
        Perform one HTTP exchange.

        Returns (status, decoded JSON body or None). Timeouts raise
        RequestTimeoutError and connection problems TransportError.
        """
        try:
            if self._session is not None:
                return await asyncio.wait_for(
                    self._send(self._session, method, url, headers, json), timeout=self.timeout
                )
            timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout_obj) as session:
                return await self._send(session, method, url, headers, json)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError("Request to the answering service timed out.") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Could not reach the answering service: {e}") from e

    async def answer_batch(
        self,
        credentials: Credentials,
        fields: Sequence[FieldDescriptor],
    ) -> Dict[str, str]:
        """
        Ask for answers to every field in ``fields``.

        Returns a uid -> answer map holding found answers only; unknown keys
        in the model output are ignored.
        """
        if not fields:
            return {}

        payload = build_payload(credentials.model, credentials.document_store_id, fields)
        logger.debug(f"Requesting answers for {len(fields)} field(s) with model {credentials.model}")

        status, data = await self._request(
            "POST",
            f"{self.api_base}/responses",
            headers=self._headers(credentials.api_key),
            json=payload,
        )
        if not 200 <= status < 300:
            raise classify_http_error(status, data)
        if data is None:
            raise InvalidModelOutputError("Answering service returned a non-JSON body.", status=status)

        parsed = parse_answer_object(extract_output_text(data))
        answers = answers_for([f.uid for f in fields], parsed)
        logger.info(f"Batch answered: {len(answers)}/{len(fields)} field(s) found")
        return answers

    async def answer_field(self, credentials: Credentials, field: FieldDescriptor) -> Optional[str]:
        answers = await self.answer_batch(credentials, [field])
        return answers.get(field.uid)

    async def validate_api_key(self, api_key: str) -> bool:
        """Cheap authenticated request; raises AuthenticationError for a bad key."""
        status, data = await self._request(
            "GET",
            f"{self.api_base}/vector_stores?limit=1",
            headers=self._headers(api_key, assistants_beta=True),
        )
        if status in (401, 403):
            raise AuthenticationError("Invalid API key.", status=status)
        if not 200 <= status < 300:
            raise classify_http_error(status, data)
        return True
