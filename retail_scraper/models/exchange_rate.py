"""
Exchange rate SQLAlchemy model.
"""

from typing import Dict, Any
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Index

from retail_scraper.config.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExchangeRate(Base):
    """
    One point-in-time currency conversion rate.

    Rows are append-only: a new rate is a new row, so the rate that applied
    to a historical order can always be looked up.
    """

    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_currency = Column(String(3), nullable=False, default="AUD")
    to_currency = Column(String(3), nullable=False, default="LKR")
    rate = Column(Numeric(18, 6, asdecimal=True), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_exchange_rates_pair_timestamp", "from_currency", "to_currency", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<ExchangeRate(id={self.id}, {self.from_currency}->{self.to_currency}={self.rate}, at={self.timestamp})>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "from_currency": self.from_currency,
            "to_currency": self.to_currency,
            "rate": float(self.rate),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
