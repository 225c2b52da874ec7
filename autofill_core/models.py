"""Shared data structures passed between the page and orchestration sides."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .sanitize import clean_text

MAX_SELECT_OPTIONS = 50

# attribute name on the wire -> dataclass attribute
_WIRE_KEYS = {
    "uid": "uid",
    "tag": "tag",
    "type": "type",
    "name": "name",
    "id": "id",
    "placeholder": "placeholder",
    "label": "label",
    "ariaLabel": "aria_label",
    "autocomplete": "autocomplete",
    "required": "required",
    "options": "options",
    "sensitive": "sensitive",
    "sensitiveReason": "sensitive_reason",
}


@dataclass
class FieldDescriptor:
    """Normalized metadata for one fillable form control.

    Descriptors are detached data: they never hold a reference to the live
    element, only the ``uid`` stamped on it.
    """

    uid: str
    tag: str
    type: str = ""
    name: str = ""
    id: str = ""
    placeholder: str = ""
    label: str = ""
    aria_label: str = ""
    autocomplete: str = ""
    required: bool = False
    options: Optional[List[str]] = None
    sensitive: bool = False
    sensitive_reason: str = ""

    @property
    def display_name(self) -> str:
        """Human label used in progress messages."""
        return self.label or self.name or self.placeholder or self.id or (self.tag or "field")

    def retrieval_context(self) -> Dict[str, Any]:
        """Metadata sent to the answering service (no uid, no sensitivity)."""
        return {
            "label": self.label,
            "name": self.name,
            "id": self.id,
            "placeholder": self.placeholder,
            "type": self.type,
            "tag": self.tag,
            "required": self.required,
            "options": list(self.options or []),
        }

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for wire, attr in _WIRE_KEYS.items():
            value = getattr(self, attr)
            if attr == "options":
                if value is None:
                    continue
                value = list(value)
            out[wire] = value
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldDescriptor":
        kwargs: Dict[str, Any] = {}
        for wire, attr in _WIRE_KEYS.items():
            if wire in data:
                kwargs[attr] = data[wire]
            elif attr in data:
                kwargs[attr] = data[attr]
        for key in ("uid", "tag", "type", "name", "id", "placeholder", "label",
                    "aria_label", "autocomplete", "sensitive_reason"):
            if key in kwargs:
                kwargs[key] = clean_text(kwargs[key])
        if "required" in kwargs:
            kwargs["required"] = bool(kwargs["required"])
        if "sensitive" in kwargs:
            kwargs["sensitive"] = bool(kwargs["sensitive"])
        if kwargs.get("options") is not None:
            kwargs["options"] = [clean_text(o) for o in kwargs["options"] if clean_text(o)][:MAX_SELECT_OPTIONS]
        if not kwargs.get("uid"):
            raise ValueError("FieldDescriptor requires a uid")
        return cls(**kwargs)


@dataclass
class ApplyResult:
    """Outcome of writing one value into the page."""

    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> "ApplyResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> "ApplyResult":
        return cls(ok=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True}
        return {"ok": False, "error": self.error}


@dataclass
class RunSummary:
    """Aggregate outcome of one autofill run."""

    state: str
    filled: int = 0
    skipped: int = 0
    total_fields: int = 0
    unique_fields: int = 0
    batches: int = 0
    retrieval_calls: int = 0
    errors: List[str] = field(default_factory=list)
