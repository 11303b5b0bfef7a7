"""JSON rendering for scripting."""

from __future__ import annotations

import dataclasses
import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from svnpilot.svn.models import DiffDocument, FileDiff, Unrecognized

# derived properties worth exporting alongside the fields
_EXTRA_PROPERTIES: Dict[type, tuple] = {
    DiffDocument: ("addition_count", "deletion_count"),
    FileDiff: ("addition_count", "deletion_count"),
}


def to_dict(value: Any) -> Any:
    """Convert models (and containers of them) to JSON-serialisable data."""
    if isinstance(value, Unrecognized):
        return value.raw
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        data = {f.name: to_dict(getattr(value, f.name)) for f in dataclasses.fields(value)}
        for name in _EXTRA_PROPERTIES.get(type(value), ()):
            data[name] = getattr(value, name)
        return data
    if isinstance(value, (list, tuple)):
        return [to_dict(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_dict(v) for k, v in value.items()}
    return value


def render(value: Any) -> str:
    """Return formatted JSON string."""
    return json.dumps({"version": "1.0", "data": to_dict(value)}, indent=2)
