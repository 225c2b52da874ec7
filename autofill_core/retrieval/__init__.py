"""Answering-service client and response parsing."""

from .client import RetrievalClient, classify_http_error
from .parsing import NOT_FOUND, clean_answer, extract_output_text, parse_answer_object
from .prompts import SYSTEM_INSTRUCTION, build_payload

__all__ = [
    "NOT_FOUND",
    "RetrievalClient",
    "SYSTEM_INSTRUCTION",
    "build_payload",
    "classify_http_error",
    "clean_answer",
    "extract_output_text",
    "parse_answer_object",
]
