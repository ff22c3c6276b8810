"""Table OTP generation and rotation."""

from __future__ import annotations

import secrets
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.table_status import OtpAction
from ..models_tenant import OtpHistory, Table


def generate_otp(previous: str | None = None) -> str:
    """Return a random zero-padded 3-digit code different from ``previous``."""

    while True:
        code = f"{secrets.randbelow(1000):03d}"
        if code != previous:
            return code


def rotate_otp(
    session: AsyncSession,
    table: Table,
    action: OtpAction,
    now: datetime,
    actor: str | None = None,
) -> str:
    """Give ``table`` a fresh OTP and stage the matching history row."""

    previous = table.current_otp
    table.current_otp = generate_otp(previous)
    table.otp_generated_at = now
    session.add(
        OtpHistory(
            restaurant_id=table.restaurant_id,
            table_id=table.id,
            otp=table.current_otp,
            previous_otp=previous,
            action=action,
            actor=actor,
            created_at=now,
        )
    )
    return table.current_otp
