"""Lookup Protocols for listings and users.

Unit tests inject fakes that conform to these Protocols.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import ListingNotFoundError, ListingNotPurchasableError
from src.cm_directory.domain.models import Listing, User


class ListingLookupProtocol(Protocol):
    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None: ...


class UserLookupProtocol(Protocol):
    async def get_user(self, db: AsyncSession, user_id: str) -> User | None: ...

    async def get_referrer_of(self, db: AsyncSession, user_id: str) -> str | None: ...


async def get_purchasable_listing(
    lookup: ListingLookupProtocol, db: AsyncSession, listing_id: str
) -> Listing:
    """Listing that can be bought right now, else ListingNotFound / ListingNotPurchasable."""
    listing = await lookup.get_listing(db, listing_id)
    if listing is None:
        raise ListingNotFoundError(listing_id)
    if not listing.is_purchasable:
        raise ListingNotPurchasableError(listing_id, listing.status.value)
    return listing
