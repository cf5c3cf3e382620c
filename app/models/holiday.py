"""
Holiday calendar model (maintained by the calendar service; read here for working-day counts)
"""
from sqlalchemy import Column, Integer, Date, String, Boolean, UniqueConstraint
from app.db.base import Base


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint('year', 'date', name='uq_holiday_year_date'),
    )
