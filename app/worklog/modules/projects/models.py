from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.worklog.models import Base

if TYPE_CHECKING:
    from app.worklog.models import User
    from app.worklog.modules.timesheets.models import TimesheetEntry


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_company", "company_id"),
        Index("idx_projects_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Budgeted hours (optional)
    total_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Billing
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    invoice: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    created_by: Mapped["User | None"] = relationship("User", lazy="selectin")
    timesheet_entries: Mapped[list["TimesheetEntry"]] = relationship(
        "TimesheetEntry",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
