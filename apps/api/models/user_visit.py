"""UserVisit model: one row per user per UTC day."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class UserVisit(Base):
    """Daily activity marker used for streak eligibility."""

    __tablename__ = "user_visits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    visit_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "visit_date", name="uq_user_visits_user_date"),
    )

    user = relationship("User", back_populates="visits")
