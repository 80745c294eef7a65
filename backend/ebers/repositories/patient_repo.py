"""Patient repository implementation.

Credit balance changes are single conditional UPDATE statements so the
balance cannot go negative even when two requests race.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update

from ebers.core.pagination import ListQuery, Page, escape_like
from ebers.db.base import Patient as DbPatient
from ebers.domain.entities import (ConsultationFrequency, DayOfWeek, Gender,
                                   Patient, Religion)
from ebers.domain.interfaces import IPatientRepository
from ebers.utils.date_utils import utcnow
from ebers.utils.money import to_money

# Columns copied one to one between the ORM model and the entity
_FIELDS = (
    "name",
    "profile_photo",
    "birth_date",
    "gender",
    "cpf",
    "rg",
    "religion",
    "legal_guardian",
    "legal_guardian_email",
    "legal_guardian_cpf",
    "phone1",
    "phone2",
    "email",
    "has_therapy_history",
    "therapy_history_details",
    "therapy_reason",
    "takes_medication",
    "medication_since",
    "medication_names",
    "has_hospitalization",
    "hospitalization_date",
    "hospitalization_reason",
    "consultation_price",
    "consultation_frequency",
    "consultation_day",
    "credits",
)


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _enum_or_none(enum_cls, value):
    return enum_cls(value) if value else None


class PatientRepository(IPatientRepository):
    """Repository for Patient persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def _sort_columns(self, query: ListQuery):
        if query.sort_by == "age":
            # Older patients have earlier birth dates
            column = DbPatient.birth_date
            primary = column.asc() if query.descending else column.desc()
        elif query.sort_by == "createdAt":
            column = DbPatient.created_at
            primary = column.desc() if query.descending else column.asc()
        else:
            column = func.lower(DbPatient.name)
            primary = column.desc() if query.descending else column.asc()
        return primary, DbPatient.id.asc()

    def _search_filter(self, search: Optional[str]):
        return DbPatient.name.ilike(f"%{escape_like(search)}%", escape="\\")

    def get_by_id(self, patient_id: str) -> Optional[Patient]:
        db_patient = self.db.get(DbPatient, patient_id)
        return self._to_domain(db_patient) if db_patient else None

    def list(self, query: ListQuery) -> Page[Patient]:
        stmt = select(DbPatient)
        count_stmt = select(func.count()).select_from(DbPatient)
        if query.search:
            stmt = stmt.where(self._search_filter(query.search))
            count_stmt = count_stmt.where(self._search_filter(query.search))

        total = self.db.scalar(count_stmt) or 0
        rows = self.db.scalars(
            stmt.order_by(*self._sort_columns(query))
            .offset(query.offset)
            .limit(query.limit)
        ).all()
        return Page.build([self._to_domain(r) for r in rows], total, query)

    def list_all(self, search: Optional[str] = None) -> List[Patient]:
        stmt = select(DbPatient).order_by(func.lower(DbPatient.name), DbPatient.id)
        if search:
            stmt = stmt.where(self._search_filter(search))
        return [self._to_domain(r) for r in self.db.scalars(stmt).all()]

    def search_by_name(self, term: str, limit: int) -> List[Patient]:
        rows = self.db.scalars(
            select(DbPatient)
            .where(self._search_filter(term))
            .order_by(func.lower(DbPatient.name), DbPatient.id)
            .limit(limit)
        ).all()
        return [self._to_domain(r) for r in rows]

    def count(self, with_credits: bool = False) -> int:
        stmt = select(func.count()).select_from(DbPatient)
        if with_credits:
            stmt = stmt.where(DbPatient.credits > 0)
        return self.db.scalar(stmt) or 0

    def total_credits(self) -> int:
        return int(self.db.scalar(select(func.coalesce(func.sum(DbPatient.credits), 0))))

    def create(self, patient: Patient) -> Patient:
        values = {field: _column_value(getattr(patient, field)) for field in _FIELDS}
        db_patient = DbPatient(**values)
        if patient.id:
            db_patient.id = patient.id
        self.db.add(db_patient)
        self.db.flush()
        return self._to_domain(db_patient)

    def update(self, patient_id: str, values: Dict[str, Any]) -> Optional[Patient]:
        db_patient = self.db.get(DbPatient, patient_id)
        if db_patient is None:
            return None
        for field, value in values.items():
            if field not in _FIELDS or field == "credits":
                raise ValueError(f"Campo não atualizável: {field}")
            setattr(db_patient, field, _column_value(value))
        db_patient.updated_at = utcnow()
        self.db.flush()
        return self._to_domain(db_patient)

    def delete(self, patient_id: str) -> bool:
        result = self.db.execute(delete(DbPatient).where(DbPatient.id == patient_id))
        return result.rowcount > 0

    def add_credits(self, patient_id: str, quantity: int) -> Optional[int]:
        result = self.db.execute(
            update(DbPatient)
            .where(DbPatient.id == patient_id)
            .values(credits=DbPatient.credits + quantity, updated_at=utcnow())
        )
        if result.rowcount == 0:
            return None
        return self.db.scalar(
            select(DbPatient.credits).where(DbPatient.id == patient_id)
        )

    def consume_credit(self, patient_id: str) -> bool:
        result = self.db.execute(
            update(DbPatient)
            .where(DbPatient.id == patient_id, DbPatient.credits > 0)
            .values(credits=DbPatient.credits - 1, updated_at=utcnow())
        )
        return result.rowcount == 1

    def _to_domain(self, db_patient: DbPatient) -> Patient:
        return Patient(
            id=db_patient.id,
            name=db_patient.name,
            profile_photo=db_patient.profile_photo,
            birth_date=db_patient.birth_date,
            gender=_enum_or_none(Gender, db_patient.gender),
            cpf=db_patient.cpf,
            rg=db_patient.rg,
            religion=_enum_or_none(Religion, db_patient.religion),
            legal_guardian=db_patient.legal_guardian,
            legal_guardian_email=db_patient.legal_guardian_email,
            legal_guardian_cpf=db_patient.legal_guardian_cpf,
            phone1=db_patient.phone1,
            phone2=db_patient.phone2,
            email=db_patient.email,
            has_therapy_history=bool(db_patient.has_therapy_history),
            therapy_history_details=db_patient.therapy_history_details,
            therapy_reason=db_patient.therapy_reason,
            takes_medication=bool(db_patient.takes_medication),
            medication_since=db_patient.medication_since,
            medication_names=db_patient.medication_names,
            has_hospitalization=bool(db_patient.has_hospitalization),
            hospitalization_date=db_patient.hospitalization_date,
            hospitalization_reason=db_patient.hospitalization_reason,
            consultation_price=to_money(db_patient.consultation_price),
            consultation_frequency=_enum_or_none(
                ConsultationFrequency, db_patient.consultation_frequency
            ),
            consultation_day=_enum_or_none(DayOfWeek, db_patient.consultation_day),
            credits=db_patient.credits or 0,
            created_at=db_patient.created_at,
            updated_at=db_patient.updated_at,
        )
