from datetime import datetime, timezone

import pytest

from ovr_core.common.errors import ValidationError
from ovr_core.corrective_actions.checklist import is_complete, normalize_checklist, progress, toggle_item

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def test_normalize_accepts_strings_and_dicts():
    items = normalize_checklist(["  Relabel vials ", {"item": "Train staff", "completed": True, "completed_at": "x"}])

    assert items == [
        {"item": "Relabel vials", "completed": False, "completed_at": None},
        {"item": "Train staff", "completed": True, "completed_at": "x"},
    ]


def test_normalize_rejects_blank_and_empty():
    with pytest.raises(ValidationError):
        normalize_checklist(["ok", "   "])
    with pytest.raises(ValidationError):
        normalize_checklist([])
    assert normalize_checklist([], require_one=False) == []


def test_toggle_flips_and_stamps():
    items = normalize_checklist(["a", "b"])

    once = toggle_item(items, 1, at=NOW)
    assert once[1]["completed"] is True
    assert once[1]["completed_at"] == NOW.isoformat()
    # input list is not mutated
    assert items[1]["completed"] is False

    twice = toggle_item(once, 1, at=NOW)
    assert twice[1] == {"item": "b", "completed": False, "completed_at": None}

    forced = toggle_item(once, 1, at=NOW, completed=True)
    assert forced[1]["completed"] is True


def test_toggle_out_of_range():
    with pytest.raises(ValidationError) as exc:
        toggle_item(normalize_checklist(["a"]), 3, at=NOW)
    assert exc.value.details == {"index": 3, "size": 1}


def test_progress_and_completion():
    items = toggle_item(normalize_checklist(["a", "b"]), 0, at=NOW)
    assert progress(items) == {"completed": 1, "total": 2}
    assert not is_complete(items)
    assert is_complete(toggle_item(items, 1, at=NOW))
    assert not is_complete([])
