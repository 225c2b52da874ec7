"""Request bodies for the Responses API."""

import json
from typing import Any, Dict, Sequence

from ..models import FieldDescriptor
from .parsing import NOT_FOUND

SYSTEM_INSTRUCTION = (
    "You fill web form fields from retrieved documents. "
    "You receive a JSON object mapping field ids to field metadata. "
    "Return only a JSON object whose keys are exactly those field ids and whose "
    "values are the best value for each field, with no explanation. "
    "For select fields, return one option from the provided options. "
    f"If a value cannot be found, use {NOT_FOUND}."
)


def batch_context(fields: Sequence[FieldDescriptor]) -> Dict[str, Dict[str, Any]]:
    return {field.uid: field.retrieval_context() for field in fields}


def build_payload(model: str, document_store_id: str, fields: Sequence[FieldDescriptor]) -> Dict[str, Any]:
    context = json.dumps(batch_context(fields), ensure_ascii=False)
    return {
        "model": model,
        "temperature": 0,
        "tools": [
            {
                "type": "file_search",
                "vector_store_ids": [document_store_id],
            }
        ],
        "input": [
            {
                "role": "system",
                "content": [{"type": "input_text", "text": SYSTEM_INSTRUCTION}],
            },
            {
                "role": "user",
                "content": [
                    {
                        "type": "input_text",
                        "text": (
                            f"Target form fields: {context}\n"
                            "Respond with only the JSON object."
                        ),
                    }
                ],
            },
        ],
    }
