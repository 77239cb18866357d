"""Balance Snapshot model - one row per account per user-local calendar day."""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base
from app.models.balance_columns import BalanceColumnsMixin

if TYPE_CHECKING:
    from app.models.account import Account


class BalanceSnapshot(BalanceColumnsMixin, Base):
    """Balance Snapshot model for daily account balance tracking."""

    __tablename__ = "balance_snapshots"
    __table_args__ = (
        UniqueConstraint("account_id", "snapshot_date", name="uq_balance_snapshot_account_date"),
        Index("idx_balance_snapshots_user_date", "user_id", "snapshot_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"))
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE")
    )
    snapshot_date: Mapped[date] = mapped_column(Date)
    snapshot_type: Mapped[str] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    # Relationships
    account: Mapped["Account"] = relationship(back_populates="balance_snapshots")

    def __repr__(self) -> str:
        return (
            f"<BalanceSnapshot(account_id={self.account_id}, date={self.snapshot_date}, "
            f"type={self.snapshot_type})>"
        )
