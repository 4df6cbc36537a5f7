"""Registrant model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.common.db import Base
from app.registrants.rules import CHURCH_LOCATIONS, GROUP_NUMBERS, MINIMUM_AGE

church_location_enum = Enum(*CHURCH_LOCATIONS, name="church_location_enum")


class Registrant(Base):
    """A camp participant. `assigned_group` is only ever written by the database-side assignment."""

    __tablename__ = "registrants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    gender: Mapped[Optional[str]] = mapped_column(String(10))
    church_location: Mapped[Optional[str]] = mapped_column(church_location_enum)
    assigned_group: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("full_name <> ''", name="ck_registrants_full_name_nonempty"),
        CheckConstraint(f"age >= {MINIMUM_AGE}", name="ck_registrants_min_age"),
        CheckConstraint(
            f"assigned_group IS NULL OR assigned_group BETWEEN {min(GROUP_NUMBERS)} AND {max(GROUP_NUMBERS)}",
            name="ck_registrants_assigned_group_range",
        ),
    )
