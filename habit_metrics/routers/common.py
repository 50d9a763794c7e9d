"""
Dependencies and serialization helpers shared by the routers.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Header

from habit_metrics.core.errors import OwnerRequiredError


def get_owner_id(
    x_owner_id: Optional[str] = Header(
        default=None,
        description="Identifier of the profile that owns the data.",
        examples=["u_123"],
    ),
) -> str:
    owner_id = (x_owner_id or "").strip()
    if not owner_id:
        raise OwnerRequiredError()
    return owner_id


def ev(v) -> str:
    """Extract bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
