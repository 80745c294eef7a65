from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (Boolean, Date, DateTime, ForeignKey, Index, Integer,
                        Numeric, String, Text, text)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from ebers.utils.date_utils import utcnow

from .session import Base


def new_id() -> str:
    return uuid.uuid4().hex


class UTCDateTime(TypeDecorator):
    """Timestamp stored as UTC and always returned timezone-aware.

    SQLite has no timezone support, so values are normalized to naive UTC on
    the way in and tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Patient(Base):
    """Patient record with clinical history and prepaid credit balance"""

    __tablename__ = "patients"
    __table_args__ = (
        Index("ix_patients_name", "name"),
        Index("ix_patients_birth_date", "birth_date"),
        Index("ix_patients_credits", "credits"),
        Index("ix_patients_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_photo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    birth_date: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cpf: Mapped[Optional[str]] = mapped_column(String(14), nullable=True)
    rg: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    religion: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    legal_guardian: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    legal_guardian_email: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    legal_guardian_cpf: Mapped[Optional[str]] = mapped_column(
        String(14), nullable=True
    )
    phone1: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    phone2: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    has_therapy_history: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    therapy_history_details: Mapped[Optional[str]] = mapped_column(Text)
    therapy_reason: Mapped[Optional[str]] = mapped_column(Text)
    takes_medication: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    medication_since: Mapped[Optional[str]] = mapped_column(String(100))
    medication_names: Mapped[Optional[str]] = mapped_column(Text)
    has_hospitalization: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    hospitalization_date: Mapped[Optional[str]] = mapped_column(String(100))
    hospitalization_reason: Mapped[Optional[str]] = mapped_column(Text)

    consultation_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    consultation_frequency: Mapped[Optional[str]] = mapped_column(String(20))
    consultation_day: Mapped[Optional[str]] = mapped_column(String(20))
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    consultations: Mapped[List["Consultation"]] = relationship(
        "Consultation", back_populates="patient", passive_deletes=True
    )

    def __repr__(self):
        return f"<Patient(id='{self.id}', name='{self.name}', credits={self.credits})>"


class Consultation(Base):
    """Clinical session billed against a patient"""

    __tablename__ = "consultations"
    __table_args__ = (
        Index("ix_consultations_patient_id", "patient_id"),
        Index("ix_consultations_status", "status"),
        Index("ix_consultations_paid", "paid"),
        Index("ix_consultations_started_at", "started_at"),
        Index("ix_consultations_patient_id_status", "patient_id", "status"),
        Index("ix_consultations_status_started_at", "status", "started_at"),
        # At most one OPEN consultation per patient, enforced by the database
        Index(
            "uq_consultations_one_open_per_patient",
            "patient_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    patient_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("patients.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="OPEN")
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    finished_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    patient: Mapped["Patient"] = relationship("Patient", back_populates="consultations")

    def __repr__(self):
        return (
            f"<Consultation(id='{self.id}', patient_id='{self.patient_id}', "
            f"status='{self.status}', paid={self.paid})>"
        )
