"""Content fingerprints used to collapse structurally identical fields."""

import hashlib
import json
from typing import Dict, Iterable, List, Tuple

from .models import FieldDescriptor
from .sanitize import lowered


def fingerprint_parts(field: FieldDescriptor) -> Tuple[str, ...]:
    """Normalized (label, name, id, placeholder, type, tag, options) tuple.

    The uid is not part of the key, so two rows of the same form produce the
    same parts. Option order is preserved.
    """
    options = tuple(lowered(o) for o in (field.options or []))
    return (
        lowered(field.label),
        lowered(field.name),
        lowered(field.id),
        lowered(field.placeholder),
        lowered(field.type),
        lowered(field.tag),
    ) + (("options",) + options if field.options is not None else ())


def fingerprint(field: FieldDescriptor) -> str:
    """SHA-1 hex digest of :func:`fingerprint_parts`."""
    blob = json.dumps(fingerprint_parts(field), ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha1(blob.encode("utf-8")).hexdigest()


def group_by_fingerprint(
    fields: Iterable[FieldDescriptor],
) -> Tuple[List[FieldDescriptor], Dict[str, str]]:
    """Split fields into representatives and a uid -> fingerprint map.

    Representatives keep page order; the first field seen for each
    fingerprint is the one sent to the answering service.
    """
    representatives: List[FieldDescriptor] = []
    by_uid: Dict[str, str] = {}
    seen = set()
    for field in fields:
        key = fingerprint(field)
        by_uid[field.uid] = key
        if key in seen:
            continue
        seen.add(key)
        representatives.append(field)
    return representatives, by_uid
