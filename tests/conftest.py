from datetime import time
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from src.models.database import Base
from src.services.billing.cache import BillingCache
from src.services.billing.tiers import RateTier, TierTable

MONDAY = 1


@pytest.fixture(autouse=True)
def _clear_billing_cache() -> Iterator[None]:
    BillingCache.invalidate_all()
    yield
    BillingCache.invalidate_all()


@pytest.fixture
def monday_tiers() -> TierTable:
    """Standard 09:00-17:00 x1.0, Premium 17:00-22:00 x1.5 on Mondays only."""
    return TierTable.from_tiers(
        [
            RateTier("Standard", 1, MONDAY, time(9), time(17), Decimal("1.0")),
            RateTier("Premium", 2, MONDAY, time(17), time(22), Decimal("1.5")),
        ]
    )


@pytest.fixture
def db_session() -> Iterator[Session]:
    engine = create_engine("sqlite://")

    # let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside the outer transaction
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
