"""
Consultation lifecycle service.

A consultation moves OPEN -> FINALIZED and, independently, unpaid -> paid.
Each transition happens once; repeating it is a business-rule error rather
than a silent rewrite of ``finished_at`` or ``paid_at``.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from ebers.core.config import RECENT_CONSULTATIONS_LIMIT
from ebers.core.exceptions import (BusinessRuleError,
                                   ConsultationNotFoundError,
                                   OpenConsultationExistsError,
                                   PatientNotFoundError)
from ebers.core.pagination import CONSULTATION_LISTING, Page, build_list_query
from ebers.core.validation import require_id, validate_payload
from ebers.domain.entities import (Consultation, ConsultationStats,
                                   ConsultationStatus)
from ebers.domain.interfaces import (IConsultationRepository,
                                     IPatientRepository, ITransactionManager)
from ebers.services.credit_ledger import CreditLedger
from ebers.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

CONSULTATION_ID_REQUIRED = "ID da consulta é obrigatório"
PRICE_REQUIRED_MESSAGE = (
    "Preço da consulta deve ser definido no cadastro do paciente "
    "antes de criar uma consulta"
)
ALREADY_FINALIZED_MESSAGE = "Consulta já foi finalizada"
ALREADY_PAID_MESSAGE = "Consulta já está paga"
DELETE_PAID_MESSAGE = "Não é possível excluir consulta paga"
DELETE_FINALIZED_MESSAGE = "Não é possível excluir consulta finalizada"


class ConsultationService:
    """Application service for the consultation lifecycle."""

    def __init__(
        self,
        consultation_repo: IConsultationRepository,
        patient_repo: IPatientRepository,
        ledger: CreditLedger,
        transactions: ITransactionManager,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.consultation_repo = consultation_repo
        self.patient_repo = patient_repo
        self.ledger = ledger
        self.transactions = transactions
        self.clock = clock

    def create_consultation(
        self, patient_id: str, price: Any = None
    ) -> Consultation:
        """Open a consultation for a patient.

        Business Rules:
        - Patient must exist
        - Patient must not have another OPEN consultation
        - Price is the explicit price, else the patient's consultation price
        - A patient with credits gets the consultation paid by one credit;
          the insert and the debit share one transaction
        """
        data = validate_payload(
            "consultation", {"patient_id": patient_id, "price": price}
        )
        patient_id = data["patient_id"]

        with self.transactions.transaction("Erro ao criar consulta"):
            patient = self.patient_repo.get_by_id(patient_id)
            if patient is None:
                raise PatientNotFoundError()

            if self.consultation_repo.get_open_for_patient(patient_id) is not None:
                raise OpenConsultationExistsError()

            resolved_price = data.get("price")
            if resolved_price is None:
                resolved_price = patient.consultation_price
            if resolved_price is None:
                raise BusinessRuleError(PRICE_REQUIRED_MESSAGE)

            now = self.clock()
            paid = patient.credits > 0
            created = self.consultation_repo.create(
                Consultation(
                    patient_id=patient_id,
                    price=resolved_price,
                    status=ConsultationStatus.OPEN,
                    started_at=now,
                    paid=paid,
                    paid_at=now if paid else None,
                    content="",
                    notes="",
                )
            )
            if paid:
                self.ledger.consume_for(created)

        created.patient = patient.to_projection()
        logger.info(
            "Consultation created",
            extra={
                "context": {
                    "consultation_id": created.id,
                    "patient_id": patient_id,
                    "price": str(created.price),
                    "paid_with_credit": paid,
                }
            },
        )
        return created

    def finalize_consultation(self, consultation_id: str) -> Consultation:
        """Close an OPEN consultation; content, notes, price and payment stay."""
        consultation_id = require_id(consultation_id, CONSULTATION_ID_REQUIRED)

        with self.transactions.transaction("Erro ao finalizar consulta"):
            current = self._get_or_raise(consultation_id)
            if current.is_finalized:
                raise BusinessRuleError(ALREADY_FINALIZED_MESSAGE)
            now = self.clock()
            if not self.consultation_repo.finalize(consultation_id, now):
                raise BusinessRuleError(ALREADY_FINALIZED_MESSAGE)

        logger.info(
            "Consultation finalized",
            extra={"context": {"consultation_id": consultation_id}},
        )
        return replace(
            current,
            status=ConsultationStatus.FINALIZED,
            finished_at=now,
            updated_at=now,
        )

    def pay_consultation(self, consultation_id: str) -> Consultation:
        """Record a direct payment. Credits are not touched."""
        consultation_id = require_id(consultation_id, CONSULTATION_ID_REQUIRED)

        with self.transactions.transaction("Erro ao registrar pagamento"):
            current = self._get_or_raise(consultation_id)
            if current.paid:
                raise BusinessRuleError(ALREADY_PAID_MESSAGE)
            now = self.clock()
            if not self.consultation_repo.mark_paid(consultation_id, now):
                raise BusinessRuleError(ALREADY_PAID_MESSAGE)

        logger.info(
            "Consultation paid",
            extra={"context": {"consultation_id": consultation_id}},
        )
        return replace(current, paid=True, paid_at=now, updated_at=now)

    def update_consultation(
        self, consultation_id: str, changes: Optional[Mapping[str, Any]]
    ) -> Consultation:
        """Patch the free-text fields (content, notes) in any status."""
        consultation_id = require_id(consultation_id, CONSULTATION_ID_REQUIRED)
        values = validate_payload(
            "consultation_update", dict(changes) if changes is not None else None
        )

        with self.transactions.transaction("Erro ao atualizar consulta"):
            current = self._get_or_raise(consultation_id)
            if not self.consultation_repo.update_text(consultation_id, values):
                raise ConsultationNotFoundError()

        return replace(current, updated_at=self.clock(), **values)

    def delete_consultation(self, consultation_id: str) -> None:
        """Delete a consultation created by mistake.

        Only unpaid OPEN consultations can be deleted.
        """
        consultation_id = require_id(consultation_id, CONSULTATION_ID_REQUIRED)

        with self.transactions.transaction("Erro ao excluir consulta"):
            current = self._get_or_raise(consultation_id)
            if current.paid:
                raise BusinessRuleError(DELETE_PAID_MESSAGE)
            if current.is_finalized:
                raise BusinessRuleError(DELETE_FINALIZED_MESSAGE)
            self.consultation_repo.delete(consultation_id)

        logger.info(
            "Consultation deleted",
            extra={
                "context": {
                    "consultation_id": consultation_id,
                    "patient_id": current.patient_id,
                }
            },
        )

    def get_consultation(self, consultation_id: str) -> Consultation:
        consultation_id = require_id(consultation_id, CONSULTATION_ID_REQUIRED)
        return self._get_or_raise(consultation_id)

    def get_active_consultation(self, patient_id: str) -> Optional[Consultation]:
        """The patient's OPEN consultation, or None."""
        patient_id = require_id(patient_id, "ID do paciente é obrigatório", "patient_id")
        if self.patient_repo.get_by_id(patient_id) is None:
            raise PatientNotFoundError()
        return self.consultation_repo.get_open_for_patient(patient_id)

    def list_consultations(
        self, params: Optional[Mapping[str, Any]] = None, **overrides: Any
    ) -> Page[Consultation]:
        query = build_list_query(CONSULTATION_LISTING, params, **overrides)
        return self.consultation_repo.list(query)

    def get_patient_consultations(
        self, patient_id: str, params: Optional[Mapping[str, Any]] = None
    ) -> Page[Consultation]:
        patient_id = require_id(patient_id, "ID do paciente é obrigatório", "patient_id")
        if self.patient_repo.get_by_id(patient_id) is None:
            raise PatientNotFoundError()
        return self.list_consultations(params, patient_id=patient_id)

    def get_recent_consultations(
        self, limit: int = RECENT_CONSULTATIONS_LIMIT
    ) -> List[Consultation]:
        return self.consultation_repo.recent(limit)

    def get_consultation_stats(self) -> ConsultationStats:
        repo = self.consultation_repo
        return ConsultationStats(
            total=repo.count(),
            open=repo.count(status=ConsultationStatus.OPEN.value),
            finalized=repo.count(status=ConsultationStatus.FINALIZED.value),
            paid=repo.count(paid=True),
            unpaid=repo.count(paid=False),
        )

    def _get_or_raise(self, consultation_id: str) -> Consultation:
        consultation = self.consultation_repo.get_by_id(consultation_id)
        if consultation is None:
            raise ConsultationNotFoundError()
        return consultation
