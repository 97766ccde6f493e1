# Overview: Sale numbers and tracking ids.

from __future__ import annotations

import secrets
import uuid
from datetime import datetime

from ..time_utils import utcnow


def generate_sale_number(now: datetime | None = None, *, sequence: int | None = None) -> str:
    """
    SALE-<YYYYMMDD>-<5 digits>.

    The suffix is random unless a sequence is supplied. Uniqueness is
    best-effort and not enforced by the schema.
    """
    now = now or utcnow()
    suffix = sequence if sequence is not None else secrets.randbelow(99999) + 1
    return f"SALE-{now:%Y%m%d}-{suffix % 100000:05d}"


def new_tracking_id() -> str:
    return uuid.uuid4().hex
