# src/cm_payout/infrastructure/db_models.py
"""SQLAlchemy ORM model for the payouts table (DDL reference only — queries use raw SQL)."""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from src.cm_common.database import Base


class PayoutORM(Base):
    __tablename__ = "payouts"
    __table_args__ = (
        Index("idx_payouts_status_created", "status", "created_at"),
        Index("idx_payouts_user_status", "user_id", "status"),
        Index(
            "uq_payouts_seller_order",
            "order_id",
            unique=True,
            postgresql_where=text("payout_type = 'SELLER_PAYOUT'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payout_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PAYABLE")
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    scout_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
