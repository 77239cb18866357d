"""Exchange Rate model - cached provider rates, one per normalised pair per day."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.database import Base


class ExchangeRate(Base):
    """Exchange rate: 1 ``base_currency`` = ``rate`` ``target_currency`` on ``rate_date``."""

    __tablename__ = "exchange_rates"
    __table_args__ = (
        UniqueConstraint("base_currency", "target_currency", "rate_date", name="uq_exchange_rate"),
        Index("idx_rates_currencies_date", "base_currency", "target_currency", "rate_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    base_currency: Mapped[str] = mapped_column(String(10))
    target_currency: Mapped[str] = mapped_column(String(10))
    rate: Mapped[Decimal] = mapped_column(Numeric(24, 12))
    rate_date: Mapped[date] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate({self.base_currency}/{self.target_currency}={self.rate} "
            f"on {self.rate_date})>"
        )
