"""Cursor pagination for profile listings, newest first.

The cursor is the base64 encoded id of the last profile on the previous page.
"""

import base64
import uuid
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import Select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from secureplace.api.models.common import PaginationParams
from secureplace.db.models import UserProfile


def encode_cursor(profile_id: str) -> str:
    return base64.urlsafe_b64encode(str(profile_id).encode()).decode()


def decode_cursor(cursor: str) -> str:
    """Profile id carried by a cursor.

    Raises:
        HTTPException: 400 if the cursor was not produced by encode_cursor().
    """
    try:
        return str(uuid.UUID(base64.urlsafe_b64decode(cursor).decode()))
    except ValueError as e:
        # binascii.Error and UnicodeDecodeError are both ValueErrors
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid cursor"
        ) from e


async def fetch_profile_page(
    db: AsyncSession, query: Select, pagination: PaginationParams
) -> tuple[list[Any], str | None, bool]:
    """Run a (UserProfile, ...) query one page at a time.

    Returns the rows of this page, the cursor of the next page and whether
    there is one.
    """
    query = query.order_by(UserProfile.created_at.desc(), UserProfile.id.desc()).limit(
        pagination.limit + 1
    )

    if pagination.cursor:
        cursor_profile = await db.get(UserProfile, decode_cursor(pagination.cursor))
        if cursor_profile:
            query = query.where(
                or_(
                    UserProfile.created_at < cursor_profile.created_at,
                    (UserProfile.created_at == cursor_profile.created_at)
                    & (UserProfile.id < cursor_profile.id),
                )
            )

    result = await db.execute(query)
    rows = list(result.all())

    has_more = len(rows) > pagination.limit
    if has_more:
        rows = rows[: pagination.limit]

    next_cursor = encode_cursor(rows[-1][0].id) if has_more and rows else None
    return rows, next_cursor, has_more
