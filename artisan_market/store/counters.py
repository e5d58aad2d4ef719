import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from artisan_market.store.repository import OrderRepository
from artisan_market.store.tables import OrderCounter, OrderRecord

logger = logging.getLogger(__name__)


def year_bounds(year: int):
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


def count_orders_in_year(session: Session, year: int) -> int:
    start, end = year_bounds(year)
    return OrderRepository(session).count(OrderRecord.created_at >= start, OrderRecord.created_at < end)


def next_order_sequence(session: Session, year: int) -> int:
    """Atomically take the next order sequence number for ``year``.

    The counter lives in its own short-lived session on the same engine and
    is committed there, so a failed order insert leaves a gap instead of
    handing the same number out twice, and nothing pending in ``session`` is
    committed along with it. The counter row is seeded from the number of
    orders already created that year.
    """
    with Session(bind=session.get_bind(), autoflush=False) as counter_session:
        result = counter_session.execute(
            update(OrderCounter)
            .where(OrderCounter.year == year)
            .values(value=OrderCounter.value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            value = count_orders_in_year(counter_session, year) + 1
            logger.info(f"Seeding order counter for {year} at {value}")
            counter_session.add(OrderCounter(year=year, value=value))
            # A concurrent seed surfaces as IntegrityError and the caller retries
            counter_session.flush()
        else:
            value = counter_session.execute(select(OrderCounter.value).where(OrderCounter.year == year)).scalar_one()
        counter_session.commit()
    return value
