# ovr_core/corrective_actions/checklist.py
"""
Checklist items are stored as [{"item", "completed", "completed_at"}].
Plain functions over lists; callers persist the result.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ovr_core.common.errors import ValidationError

MAX_ITEM_LENGTH = 500


def normalize_checklist(items: Iterable[Any], *, require_one: bool = True) -> List[Dict[str, Any]]:
    """
    Accepts plain strings or item dicts. Blank items are rejected.
    """
    out: List[Dict[str, Any]] = []
    for raw in items or []:
        if isinstance(raw, str):
            raw = {"item": raw}
        if not isinstance(raw, dict):
            raise ValidationError("Checklist items must be strings or objects.")

        text = str(raw.get("item") or "").strip()
        if not text:
            raise ValidationError("Checklist items cannot be empty.")
        if len(text) > MAX_ITEM_LENGTH:
            raise ValidationError(f"Checklist items must be at most {MAX_ITEM_LENGTH} characters.")

        completed = bool(raw.get("completed", False))
        out.append(
            {
                "item": text,
                "completed": completed,
                "completed_at": raw.get("completed_at") if completed else None,
            }
        )

    if require_one and not out:
        raise ValidationError("Checklist must contain at least one item.")
    return out


def toggle_item(items: List[Dict[str, Any]], index: int, *, at: datetime, completed: Optional[bool] = None) -> List[Dict[str, Any]]:
    if not 0 <= index < len(items):
        raise ValidationError("Checklist index out of range.", details={"index": index, "size": len(items)})

    updated = [dict(i) for i in items]
    target = updated[index]
    value = (not target.get("completed")) if completed is None else bool(completed)

    target["completed"] = value
    target["completed_at"] = at.isoformat() if value else None
    return updated


def progress(items: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    items = list(items or [])
    done = sum(1 for i in items if i.get("completed"))
    return {"completed": done, "total": len(items)}


def is_complete(items: Iterable[Dict[str, Any]]) -> bool:
    p = progress(items)
    return p["total"] > 0 and p["completed"] == p["total"]
