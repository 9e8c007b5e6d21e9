# backend/app/db/models.py

import datetime

from sqlalchemy import JSON, Column, DateTime, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class PriceSample(Base):
    __tablename__ = "price_snapshots"

    # Autoincrement id is the insertion position; the latest sample has the highest id.
    id = Column(Integer, primary_key=True, autoincrement=True)
    prices = Column("prices_json", JSON, nullable=False)
    captured_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<PriceSample(id={self.id}, symbols={len(self.prices or {})})>"
