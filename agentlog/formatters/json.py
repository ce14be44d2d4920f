"""JSON formatter: structured output to stdout."""
from __future__ import annotations

import json
import sys
from datetime import datetime
from enum import Enum


def default_serializer(obj):
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return str(obj)


def dumps(data) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=default_serializer)


def format_json(data) -> None:
    """Write canonical data as JSON to stdout."""
    sys.stdout.write(dumps(data))
    sys.stdout.write("\n")
