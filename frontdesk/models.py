from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import clock
from .db import Base


def format_patient_id(ordinal: int) -> str:
    return f"P{ordinal:03d}"


class VisitStatus(enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(String(12), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    date_of_birth: Mapped[str] = mapped_column(String(10), nullable=False)  # ISO YYYY-MM-DD
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    medical_history: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=clock.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=clock.now, onupdate=clock.now, nullable=False)

    visits: Mapped[list["Visit"]] = relationship(back_populates="patient", order_by="Visit.id")

    def __repr__(self) -> str:
        return f"Patient({self.id}, {self.name})"


class Visit(Base):
    __tablename__ = "visits"
    __table_args__ = (
        # Il numero di token è univoco solo all'interno della giornata
        UniqueConstraint("visit_date", "token_number", name="uq_visit_date_token"),
        # Fee e ora di completamento: entrambi valorizzati o entrambi NULL
        CheckConstraint(
            "(consultation_fee IS NULL) = (completion_time IS NULL)",
            name="ck_visit_completion_pair",
        ),
        CheckConstraint("consultation_fee IS NULL OR consultation_fee >= 0", name="ck_visit_fee_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    token_number: Mapped[int] = mapped_column(Integer, nullable=False)
    reason_for_visit: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[VisitStatus] = mapped_column(
        Enum(VisitStatus, name="visit_status", values_callable=lambda e: [m.value for m in e]),
        default=VisitStatus.PENDING,
        nullable=False,
    )
    consultation_fee: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)

    issue_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completion_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    visit_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    patient: Mapped["Patient"] = relationship(back_populates="visits")

    def __repr__(self) -> str:
        return f"Visit(#{self.token_number} {self.visit_date}, {self.status.value})"


class TokenCounter(Base):
    """Un record per giorno: ultimo token emesso in quella data."""

    __tablename__ = "token_counters"

    day: Mapped[date] = mapped_column("date", Date, primary_key=True)
    last_token: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
