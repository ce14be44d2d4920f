"""Shape fingerprinting: structural variant analysis of raw tool output lines."""
from __future__ import annotations

import hashlib
import json
from collections import Counter
from pathlib import Path

from agentlog.primitives import NOT_JSON, load_json
from agentlog.session import Session

_DISCRIMINATORS = ("type", "role", "subtype", "method")


def _discriminator_type(obj: object) -> str | None:
    if isinstance(obj, dict):
        value = obj.get("type")
        if isinstance(value, str):
            return value
    return None


def fingerprint(record: dict) -> str:
    """Create a structural fingerprint from one parsed stdout line."""
    parts: list[str] = []

    # Sorted top-level keys
    parts.append(",".join(sorted(record.keys())))

    for key in _DISCRIMINATORS:
        if key in record:
            parts.append(f"{key}:{record[key]}")

    # Nested discriminators used by the app-server protocols
    params = record.get("params")
    if isinstance(params, dict):
        for nested in (params.get("msg"), params.get("event"), params.get("item")):
            nested_type = _discriminator_type(nested)
            if nested_type:
                parts.append(f"params:{nested_type}")
    item_type = _discriminator_type(record.get("item"))
    if item_type:
        parts.append(f"item:{item_type}")

    # Content block types if content is a list
    content = record.get("content")
    if content is None:
        msg = record.get("message")
        if isinstance(msg, dict):
            content = msg.get("content")

    if isinstance(content, list):
        block_types: list[str] = []
        for block in content:
            bt = _discriminator_type(block)
            if bt and bt not in block_types:
                block_types.append(bt)
        if block_types:
            parts.append("blocks:" + "+".join(sorted(block_types)))

    raw = "|".join(parts)
    return hashlib.md5(raw.encode()).hexdigest()[:12]


def deep_walk(
    obj: object,
    path: str = "$",
    depth: int = 0,
    max_depth: int = 5,
) -> list[tuple[str, str]]:
    """Recursively walk a nested structure, producing (json_path, type_description) tuples."""
    results: list[tuple[str, str]] = []

    if depth > max_depth:
        return results

    if isinstance(obj, dict):
        results.append((path, "dict"))
        for key, value in obj.items():
            results.extend(deep_walk(value, f"{path}.{key}", depth + 1, max_depth))
    elif isinstance(obj, list):
        results.append((path, "list"))
        if obj:
            # Collapse all items: recurse into the first one only
            results.extend(deep_walk(obj[0], f"{path}[*]", depth + 1, max_depth))
    else:
        results.append((path, type(obj).__name__))

    return results


def stdout_objects(session: Session) -> tuple[list[tuple[int, dict]], int]:
    """Parsed JSON objects from stdout envelopes, plus the count of other lines."""
    objects: list[tuple[int, dict]] = []
    other = 0
    for idx, msg in enumerate(session.logs()):
        if msg.type != "stdout":
            continue
        line = (msg.content or "").strip()
        if not line:
            continue
        parsed = load_json(line)
        if parsed is NOT_JSON or not isinstance(parsed, dict):
            other += 1
            continue
        objects.append((idx, parsed))
    return objects, other


def _load_fingerprints(file_path: Path) -> set[str]:
    with open(file_path) as f:
        data = json.load(f)

    fps: set[str] = set()
    # Either a list of sample lines or a previous shapes result
    if isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                fps.add(fingerprint(item))
    elif isinstance(data, dict):
        for shape in data.get("shapes", []):
            if isinstance(shape, dict) and "fingerprint" in shape:
                fps.add(shape["fingerprint"])
    return fps


def cmd_shapes(
    session: Session,
    deep: bool = False,
    verify_file: str | None = None,
) -> dict:
    """Shape inventory or verification for a session's raw stdout."""
    # fingerprint -> (type, keys_str, first_index, first_raw)
    fp_info: dict[str, tuple[str, str, int, dict]] = {}
    fp_counts: Counter[str] = Counter()

    objects, non_json = stdout_objects(session)
    for idx, obj in objects:
        fp = fingerprint(obj)
        fp_counts[fp] += 1
        if fp not in fp_info:
            rec_type = obj.get("type") or obj.get("method") or obj.get("role") or ""
            fp_info[fp] = (str(rec_type), ",".join(sorted(obj.keys())), idx, obj)

    if verify_file is not None:
        file_fps = _load_fingerprints(Path(verify_file))
        session_fps = set(fp_info)
        matched = session_fps & file_fps
        coverage_ratio = len(matched) / len(session_fps) if session_fps else 0.0
        return {
            "session": session.id,
            "coverage": {
                "session_shapes": len(session_fps),
                "file_shapes": len(file_fps),
                "matched": len(matched),
                "missing_from_file": sorted(session_fps - file_fps),
                "extra_in_file": sorted(file_fps - session_fps),
                "coverage_ratio": round(coverage_ratio, 4),
            },
        }

    shapes = []
    for fp, count in fp_counts.most_common():
        rec_type, keys_str, first_idx, first_raw = fp_info[fp]
        shape: dict = {
            "fingerprint": fp,
            "type": rec_type,
            "keys": keys_str,
            "count": count,
            "example_index": first_idx,
        }
        if deep:
            shape["paths"] = [{"path": p, "type": t} for p, t in deep_walk(first_raw)]
        shapes.append(shape)

    return {
        "session": session.id,
        "non_json_lines": non_json,
        "shapes": shapes,
    }
