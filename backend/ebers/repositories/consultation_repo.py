"""Consultation repository implementation.

Status and payment transitions are conditional UPDATEs guarded by the
current state, and the partial unique index on OPEN consultations turns a
concurrent second insert into ``OpenConsultationExistsError``.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from ebers.core.exceptions import OpenConsultationExistsError
from ebers.core.pagination import ListQuery, Page, escape_like
from ebers.db.base import Consultation as DbConsultation
from ebers.db.base import Patient as DbPatient
from ebers.domain.entities import (Consultation, ConsultationStatus,
                                   PatientProjection)
from ebers.domain.interfaces import IConsultationRepository
from ebers.utils.date_utils import utcnow
from ebers.utils.money import to_money

logger = logging.getLogger(__name__)

OPEN_INDEX_NAME = "uq_consultations_one_open_per_patient"

_SORT_COLUMNS = {
    "startedAt": DbConsultation.started_at,
    "status": DbConsultation.status,
    "paid": DbConsultation.paid,
}


def _is_open_conflict(error: IntegrityError) -> bool:
    message = str(getattr(error, "orig", error))
    return OPEN_INDEX_NAME in message or "consultations.patient_id" in message


class ConsultationRepository(IConsultationRepository):
    """Repository for Consultation persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def _filtered(self, stmt, query: ListQuery):
        filters = query.filters
        if "patient_id" in filters:
            stmt = stmt.where(DbConsultation.patient_id == filters["patient_id"])
        if "status" in filters:
            stmt = stmt.where(
                DbConsultation.status == ConsultationStatus(filters["status"]).value
            )
        if "paid" in filters:
            stmt = stmt.where(DbConsultation.paid.is_(bool(filters["paid"])))
        if query.search:
            stmt = stmt.join_from(
                DbConsultation, DbPatient, DbConsultation.patient_id == DbPatient.id
            ).where(
                DbPatient.name.ilike(f"%{escape_like(query.search)}%", escape="\\")
            )
        return stmt

    def get_by_id(self, consultation_id: str) -> Optional[Consultation]:
        db_consultation = self.db.scalars(
            select(DbConsultation)
            .options(joinedload(DbConsultation.patient))
            .where(DbConsultation.id == consultation_id)
        ).first()
        return self._to_domain(db_consultation) if db_consultation else None

    def get_open_for_patient(self, patient_id: str) -> Optional[Consultation]:
        db_consultation = self.db.scalars(
            select(DbConsultation)
            .options(joinedload(DbConsultation.patient))
            .where(
                DbConsultation.patient_id == patient_id,
                DbConsultation.status == ConsultationStatus.OPEN.value,
            )
            .order_by(DbConsultation.started_at.desc())
        ).first()
        return self._to_domain(db_consultation) if db_consultation else None

    def list(self, query: ListQuery) -> Page[Consultation]:
        column = _SORT_COLUMNS[query.sort_by]
        primary = column.desc() if query.descending else column.asc()

        total = (
            self.db.scalar(
                self._filtered(select(func.count(DbConsultation.id)), query)
            )
            or 0
        )
        rows = self.db.scalars(
            self._filtered(select(DbConsultation), query)
            .options(joinedload(DbConsultation.patient))
            .order_by(primary, DbConsultation.id.asc())
            .offset(query.offset)
            .limit(query.limit)
        ).all()
        return Page.build([self._to_domain(r) for r in rows], total, query)

    def recent(self, limit: int) -> List[Consultation]:
        rows = self.db.scalars(
            select(DbConsultation)
            .options(joinedload(DbConsultation.patient))
            .order_by(DbConsultation.started_at.desc(), DbConsultation.id.asc())
            .limit(limit)
        ).all()
        return [self._to_domain(r) for r in rows]

    def count(
        self,
        status: Optional[str] = None,
        paid: Optional[bool] = None,
        patient_id: Optional[str] = None,
    ) -> int:
        stmt = select(func.count(DbConsultation.id))
        if status is not None:
            stmt = stmt.where(
                DbConsultation.status == ConsultationStatus(status).value
            )
        if paid is not None:
            stmt = stmt.where(DbConsultation.paid.is_(paid))
        if patient_id is not None:
            stmt = stmt.where(DbConsultation.patient_id == patient_id)
        return self.db.scalar(stmt) or 0

    def count_by_patient(
        self, patient_ids: Optional[Iterable[str]] = None
    ) -> Dict[str, Tuple[int, int]]:
        stmt = select(
            DbConsultation.patient_id,
            func.count(DbConsultation.id),
            func.sum(case((DbConsultation.paid.is_(True), 1), else_=0)),
        ).group_by(DbConsultation.patient_id)
        if patient_ids is not None:
            ids = list(patient_ids)
            if not ids:
                return {}
            stmt = stmt.where(DbConsultation.patient_id.in_(ids))
        return {
            patient_id: (int(total or 0), int(paid or 0))
            for patient_id, total, paid in self.db.execute(stmt).all()
        }

    def patients_with_open_consultation(
        self, patient_ids: Optional[Iterable[str]] = None
    ) -> Set[str]:
        stmt = (
            select(DbConsultation.patient_id)
            .where(DbConsultation.status == ConsultationStatus.OPEN.value)
            .distinct()
        )
        if patient_ids is not None:
            ids = list(patient_ids)
            if not ids:
                return set()
            stmt = stmt.where(DbConsultation.patient_id.in_(ids))
        return set(self.db.scalars(stmt).all())

    def paid_revenue(self) -> Decimal:
        total = self.db.scalar(
            select(func.coalesce(func.sum(DbConsultation.price), 0)).where(
                DbConsultation.paid.is_(True)
            )
        )
        return to_money(total or 0)

    def create(self, consultation: Consultation) -> Consultation:
        db_consultation = DbConsultation(
            patient_id=consultation.patient_id,
            status=consultation.status.value,
            started_at=consultation.started_at,
            finished_at=consultation.finished_at,
            content=consultation.content,
            notes=consultation.notes,
            price=consultation.price,
            paid=consultation.paid,
            paid_at=consultation.paid_at,
        )
        if consultation.id:
            db_consultation.id = consultation.id
        self.db.add(db_consultation)
        try:
            self.db.flush()
        except IntegrityError as e:
            if _is_open_conflict(e):
                logger.warning(
                    "Concurrent open consultation rejected by unique index",
                    extra={"context": {"patient_id": consultation.patient_id}},
                )
                raise OpenConsultationExistsError() from e
            raise
        return self._to_domain(db_consultation, with_patient=False)

    def finalize(self, consultation_id: str, finished_at: datetime) -> bool:
        result = self.db.execute(
            update(DbConsultation)
            .where(
                DbConsultation.id == consultation_id,
                DbConsultation.status == ConsultationStatus.OPEN.value,
            )
            .values(
                status=ConsultationStatus.FINALIZED.value,
                finished_at=finished_at,
                updated_at=utcnow(),
            )
        )
        return result.rowcount == 1

    def mark_paid(self, consultation_id: str, paid_at: datetime) -> bool:
        result = self.db.execute(
            update(DbConsultation)
            .where(
                DbConsultation.id == consultation_id,
                DbConsultation.paid.is_(False),
            )
            .values(paid=True, paid_at=paid_at, updated_at=utcnow())
        )
        return result.rowcount == 1

    def update_text(self, consultation_id: str, values: Dict[str, str]) -> bool:
        allowed = {k: v for k, v in values.items() if k in ("content", "notes")}
        result = self.db.execute(
            update(DbConsultation)
            .where(DbConsultation.id == consultation_id)
            .values(**allowed, updated_at=utcnow())
        )
        return result.rowcount == 1

    def delete(self, consultation_id: str) -> bool:
        result = self.db.execute(
            delete(DbConsultation).where(DbConsultation.id == consultation_id)
        )
        return result.rowcount > 0

    def _to_domain(
        self, db_consultation: DbConsultation, with_patient: bool = True
    ) -> Consultation:
        projection = None
        if with_patient and db_consultation.patient is not None:
            db_patient = db_consultation.patient
            projection = PatientProjection(
                id=db_patient.id,
                name=db_patient.name,
                profile_photo=db_patient.profile_photo,
                birth_date=db_patient.birth_date,
            )
        return Consultation(
            id=db_consultation.id,
            patient_id=db_consultation.patient_id,
            status=ConsultationStatus(db_consultation.status),
            started_at=db_consultation.started_at,
            finished_at=db_consultation.finished_at,
            content=db_consultation.content or "",
            notes=db_consultation.notes or "",
            price=to_money(db_consultation.price),
            paid=bool(db_consultation.paid),
            paid_at=db_consultation.paid_at,
            created_at=db_consultation.created_at,
            updated_at=db_consultation.updated_at,
            patient=projection,
        )
