"""
Exchange rate store.

Append-only log of AUD to LKR conversion rates. The most recently timestamped
record is authoritative; older rows are kept for auditing which rate applied
to a historical order.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from retail_scraper.exceptions import InvalidInput, NoRateAvailable
from retail_scraper.models.exchange_rate import ExchangeRate

logger = structlog.get_logger(__name__)


def to_rate(value: Union[Decimal, float, int, str]) -> Decimal:
    """Coerce a rate to a positive finite Decimal."""
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInput(f"Invalid exchange rate: {value!r}")

    if not rate.is_finite() or rate <= 0:
        raise InvalidInput(f"Exchange rate must be a positive number, got {value!r}")
    return rate


def to_utc(timestamp: datetime) -> datetime:
    """Normalise a timestamp to UTC. Naive values are taken to be UTC already."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class ExchangeRateStore:
    """Read-mostly store for exchange rates backed by SQLAlchemy."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        from_currency: str = "AUD",
        to_currency: str = "LKR",
    ):
        self.session_factory = session_factory
        self.from_currency = from_currency
        self.to_currency = to_currency

    def _latest_query(self, limit: int):
        return (
            select(ExchangeRate)
            .where(
                ExchangeRate.from_currency == self.from_currency,
                ExchangeRate.to_currency == self.to_currency,
            )
            .order_by(ExchangeRate.timestamp.desc(), ExchangeRate.id.desc())
            .limit(limit)
        )

    async def get_latest_record(self) -> ExchangeRate:
        """
        Get the most recently timestamped rate record.

        Raises:
            NoRateAvailable: if no rate has been recorded
        """
        async with self.session_factory() as session:
            result = await session.execute(self._latest_query(1))
            record = result.scalar_one_or_none()

        if record is None:
            raise NoRateAvailable(
                f"No {self.from_currency}->{self.to_currency} exchange rate has been recorded"
            )
        return record

    async def get_latest_rate(self) -> Decimal:
        """Get the authoritative rate as a Decimal snapshot."""
        record = await self.get_latest_record()
        return Decimal(record.rate)

    async def record(
        self,
        rate: Union[Decimal, float, int, str],
        timestamp: Optional[datetime] = None,
    ) -> ExchangeRate:
        """
        Append a new rate record. Existing rows are never modified.

        Args:
            rate: Positive conversion rate
            timestamp: When the rate was observed (defaults to now)

        Returns:
            The stored record
        """
        value = to_rate(rate)

        entry = ExchangeRate(
            from_currency=self.from_currency,
            to_currency=self.to_currency,
            rate=value,
            timestamp=to_utc(timestamp) if timestamp else datetime.now(timezone.utc),
        )
        async with self.session_factory() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)

        logger.info(
            "Exchange rate recorded",
            from_currency=self.from_currency,
            to_currency=self.to_currency,
            rate=str(value),
            timestamp=entry.timestamp.isoformat(),
        )
        return entry

    async def history(self, limit: int = 50) -> List[ExchangeRate]:
        """Most recent rates first."""
        async with self.session_factory() as session:
            result = await session.execute(self._latest_query(limit))
            return list(result.scalars().all())
