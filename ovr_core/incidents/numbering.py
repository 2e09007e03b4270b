# ovr_core/incidents/numbering.py
"""
Human-readable incident reference numbers: OVR-YYYY-MM-NNN.

The sequence is monotonic per (year, month) and restarts every month.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from ovr_core.incidents.models import Incident, ReferenceSequence

REFERENCE_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<month>\d{2})-(?P<seq>\d{3,})$")


@dataclass(frozen=True)
class ParsedReference:
    prefix: str
    year: int
    month: int
    sequence: int


def _prefix() -> str:
    return getattr(settings, "OVR_REFERENCE_PREFIX", "OVR")


def format_reference(year: int, month: int, sequence: int, *, prefix: Optional[str] = None) -> str:
    return f"{prefix or _prefix()}-{year:04d}-{month:02d}-{sequence:03d}"


def parse_reference(value: str) -> ParsedReference:
    m = REFERENCE_RE.match((value or "").strip())
    if not m:
        raise ValueError(f"Invalid reference number: {value!r}")

    month = int(m.group("month"))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid reference month: {value!r}")

    return ParsedReference(
        prefix=m.group("prefix"),
        year=int(m.group("year")),
        month=month,
        sequence=int(m.group("seq")),
    )


def is_valid_reference(value: str) -> bool:
    try:
        parse_reference(value)
    except ValueError:
        return False
    return True


class IncidentNumberService:
    @staticmethod
    def _lock_bucket(year: int, month: int) -> ReferenceSequence:
        row = ReferenceSequence.objects.select_for_update().filter(year=year, month=month).first()
        if row is not None:
            return row

        # Seed from references already issued in this bucket (imported data, manual rows).
        pattern = f"-{year:04d}-{month:02d}-"
        seed = Incident.objects.filter(reference_number__contains=pattern).count()

        try:
            with transaction.atomic():
                ReferenceSequence.objects.create(year=year, month=month, last_value=seed)
        except IntegrityError:
            # another transaction created the bucket first
            pass

        return ReferenceSequence.objects.select_for_update().get(year=year, month=month)

    @staticmethod
    @transaction.atomic
    def next_reference(*, at: Optional[datetime] = None) -> str:
        """
        Atomically increment the (year, month) sequence and return the next reference.
        Must run inside the incident insert transaction so the lock is held until commit.
        """
        at = timezone.localtime(at or timezone.now())
        row = IncidentNumberService._lock_bucket(at.year, at.month)

        row.last_value += 1
        row.save(update_fields=["last_value"])

        return format_reference(at.year, at.month, row.last_value)
