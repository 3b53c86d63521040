"""Raw SQL lookups against the marketplace's listings and users tables."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import ListingStatus
from src.cm_directory.domain.models import Listing, User

_GET_LISTING_SQL = text("""
    SELECT id, seller_id, title, price, status
    FROM listings WHERE id = :id
""")

_GET_USER_SQL = text("""
    SELECT id, name, email, recruiter_id, is_admin, is_active, created_at
    FROM users WHERE id = :id
""")

_GET_REFERRER_SQL = text("SELECT recruiter_id FROM users WHERE id = :id")


def _row_to_listing(row: Any) -> Listing:
    return Listing(
        id=str(row.id),
        seller_id=str(row.seller_id),
        title=row.title,
        price=row.price,
        status=ListingStatus(row.status),
    )


def _row_to_user(row: Any) -> User:
    return User(
        id=str(row.id),
        name=row.name,
        email=row.email,
        recruiter_id=str(row.recruiter_id) if row.recruiter_id is not None else None,
        is_admin=row.is_admin,
        is_active=row.is_active,
        created_at=row.created_at,
    )


class ListingLookup:
    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None:
        row = (await db.execute(_GET_LISTING_SQL, {"id": listing_id})).fetchone()
        return _row_to_listing(row) if row else None


class UserLookup:
    async def get_user(self, db: AsyncSession, user_id: str) -> User | None:
        row = (await db.execute(_GET_USER_SQL, {"id": user_id})).fetchone()
        return _row_to_user(row) if row else None

    async def get_referrer_of(self, db: AsyncSession, user_id: str) -> str | None:
        row = (await db.execute(_GET_REFERRER_SQL, {"id": user_id})).fetchone()
        if row is None or row.recruiter_id is None:
            return None
        return str(row.recruiter_id)
