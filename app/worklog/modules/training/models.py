from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.worklog.models import Base


class Training(Base):
    __tablename__ = "trainings"
    __table_args__ = (Index("idx_trainings_user", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    course_name: Mapped[str] = mapped_column(String(255), nullable=False)
    course_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    course_category: Mapped[str] = mapped_column(String(128), nullable=False)
    organization_name: Mapped[str] = mapped_column(String(255), nullable=False)
    certificate_title: Mapped[str] = mapped_column(String(255), nullable=False)

    level: Mapped[str] = mapped_column(String(32), nullable=False)  # beginner, intermediate, advanced
    status: Mapped[str] = mapped_column(String(32), nullable=False)  # started, in_progress, completed, others
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)  # certificate, demo, others

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
