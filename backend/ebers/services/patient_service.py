"""
Patient service: registration, profile updates, listing and deletion.
"""

import logging
from typing import Any, List, Mapping, Optional

from ebers.core.config import SEARCH_MIN_LENGTH, SEARCH_RESULT_LIMIT
from ebers.core.exceptions import BusinessRuleError, PatientNotFoundError
from ebers.core.pagination import PATIENT_LISTING, Page, build_list_query
from ebers.core.validation import require_id, validate_payload
from ebers.domain.entities import Patient, PatientListItem, PatientStats
from ebers.domain.interfaces import (IConsultationRepository,
                                     IPatientRepository, ITransactionManager)

logger = logging.getLogger(__name__)

PATIENT_ID_REQUIRED = "ID do paciente é obrigatório"
DELETE_WITH_CONSULTATIONS_MESSAGE = (
    "Não é possível excluir paciente com consultas registradas"
)


class PatientService:
    """Application service for patient records."""

    def __init__(
        self,
        patient_repo: IPatientRepository,
        consultation_repo: IConsultationRepository,
        transactions: ITransactionManager,
    ):
        self.patient_repo = patient_repo
        self.consultation_repo = consultation_repo
        self.transactions = transactions

    def create_patient(self, data: Optional[Mapping[str, Any]]) -> Patient:
        cleaned = validate_payload("patient", dict(data) if data is not None else None)
        with self.transactions.transaction("Erro ao criar paciente"):
            patient = self.patient_repo.create(Patient(**cleaned))
        logger.info(
            "Patient created",
            extra={"context": {"patient_id": patient.id, "credits": patient.credits}},
        )
        return patient

    def update_patient(
        self, patient_id: str, data: Optional[Mapping[str, Any]]
    ) -> Patient:
        """Update profile fields. The credit balance cannot be changed here."""
        patient_id = require_id(patient_id, PATIENT_ID_REQUIRED)
        payload = {k: v for k, v in (data or {}).items() if k != "id"}
        cleaned = validate_payload("patient_update", payload)

        with self.transactions.transaction("Erro ao atualizar paciente"):
            patient = self.patient_repo.update(patient_id, cleaned)
            if patient is None:
                raise PatientNotFoundError()

        logger.info(
            "Patient updated",
            extra={"context": {"patient_id": patient_id, "fields": sorted(cleaned)}},
        )
        return patient

    def get_patient(self, patient_id: str) -> Patient:
        patient_id = require_id(patient_id, PATIENT_ID_REQUIRED)
        patient = self.patient_repo.get_by_id(patient_id)
        if patient is None:
            raise PatientNotFoundError()
        return patient

    def delete_patient(self, patient_id: str) -> None:
        """Delete a patient that owns no consultations."""
        patient_id = require_id(patient_id, PATIENT_ID_REQUIRED)

        with self.transactions.transaction("Erro ao excluir paciente"):
            if self.patient_repo.get_by_id(patient_id) is None:
                raise PatientNotFoundError()
            if self.consultation_repo.count(patient_id=patient_id) > 0:
                raise BusinessRuleError(DELETE_WITH_CONSULTATIONS_MESSAGE)
            self.patient_repo.delete(patient_id)

        logger.info("Patient deleted", extra={"context": {"patient_id": patient_id}})

    def list_patients(
        self, params: Optional[Mapping[str, Any]] = None, **overrides: Any
    ) -> Page[PatientListItem]:
        query = build_list_query(PATIENT_LISTING, params, **overrides)
        page = self.patient_repo.list(query)
        active = self.consultation_repo.patients_with_open_consultation(
            [p.id for p in page.items]
        )
        return page.map(lambda p: PatientListItem(p, p.id in active))

    def search_patients(
        self, term: Optional[str], limit: int = SEARCH_RESULT_LIMIT
    ) -> List[PatientListItem]:
        """Name search for pickers; shorter than two characters yields nothing."""
        term = (term or "").strip()
        if len(term) < SEARCH_MIN_LENGTH:
            return []
        patients = self.patient_repo.search_by_name(term, limit)
        active = self.consultation_repo.patients_with_open_consultation(
            [p.id for p in patients]
        )
        return [PatientListItem(p, p.id in active) for p in patients]

    def get_patient_stats(self) -> PatientStats:
        return PatientStats(
            total=self.patient_repo.count(),
            with_credits=self.patient_repo.count(with_credits=True),
            with_active_consultations=len(
                self.consultation_repo.patients_with_open_consultation()
            ),
        )
