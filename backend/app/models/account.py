"""Account model - represents linked bank, brokerage and crypto accounts."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base
from app.models.balance_columns import BalanceColumnsMixin

if TYPE_CHECKING:
    from app.models.balance_snapshot import BalanceSnapshot
    from app.models.user import User


class Account(BalanceColumnsMixin, Base):
    """Account model. Balances are kept current by syncs and copied into snapshots."""

    __tablename__ = "accounts"
    __table_args__ = (Index("idx_accounts_user", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"))
    name: Mapped[str | None] = mapped_column(String(100))
    mask: Mapped[str | None] = mapped_column(String(20))
    account_type: Mapped[str] = mapped_column(String(50))
    provider_name: Mapped[str | None] = mapped_column(String(50))  # 'plaid', 'crypto', ...
    external_id: Mapped[str | None] = mapped_column(String(200))
    # Only set for crypto wallets
    wallet_network: Mapped[str | None] = mapped_column(String(20))
    wallet_address: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    # Relationships
    user: Mapped["User"] = relationship(back_populates="accounts")
    balance_snapshots: Mapped[list["BalanceSnapshot"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name='{self.name}', type='{self.account_type}')>"
