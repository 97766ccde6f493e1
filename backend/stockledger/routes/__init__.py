from __future__ import annotations

from flask import request

from ..errors import ValidationError


def company_id_from_request() -> int:
    """Tenant id from the X-Company-Id header (request routing is handled upstream)."""
    raw = request.headers.get("X-Company-Id")
    if raw is None or not raw.strip().isdigit():
        raise ValidationError("X-Company-Id header with a numeric company id is required")
    return int(raw)
