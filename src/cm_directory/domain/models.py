"""Read-side views of collaborator entities owned by the wider marketplace.

Listings and users are managed elsewhere (listing CRUD, admin user management);
the escrow engine only reads them.
"""

from dataclasses import dataclass
from datetime import datetime

from src.cm_common.enums import ListingStatus


@dataclass
class Listing:
    id: str
    seller_id: str
    title: str
    price: int  # paise
    status: ListingStatus

    @property
    def is_purchasable(self) -> bool:
        return self.status == ListingStatus.ACTIVE


@dataclass
class User:
    id: str
    name: str
    email: str
    recruiter_id: str | None = None  # user who referred this user, if any
    is_admin: bool = False
    is_active: bool = True
    created_at: datetime | None = None
