"""
Financial aggregation over patients and their consultations.

The single-patient view and the paginated overview both go through
``_summaries`` so a patient shows identical numbers in either place.
"""

import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ebers.core.config import SEARCH_MIN_LENGTH, SEARCH_RESULT_LIMIT
from ebers.core.logging_config import log_performance
from ebers.core.pagination import FINANCIAL_LISTING, Page, build_list_query
from ebers.domain.entities import (FinancialStats, Patient,
                                   PatientFinancialSummary)
from ebers.domain.interfaces import IConsultationRepository, IPatientRepository

logger = logging.getLogger(__name__)

_SORT_KEYS = {
    "name": lambda summary: summary.name.casefold(),
    "paymentDeficit": lambda summary: summary.payment_deficit,
}


class FinancialService:
    """Derives per-patient financial metrics and population-wide totals."""

    def __init__(
        self,
        patient_repo: IPatientRepository,
        consultation_repo: IConsultationRepository,
    ):
        self.patient_repo = patient_repo
        self.consultation_repo = consultation_repo

    def _summaries(
        self, patients: List[Patient], restrict: bool = True
    ) -> List[PatientFinancialSummary]:
        ids = [p.id for p in patients] if restrict else None
        counts: Dict[str, Tuple[int, int]] = self.consultation_repo.count_by_patient(
            ids
        )
        return [
            PatientFinancialSummary.from_counts(patient, *counts.get(patient.id, (0, 0)))
            for patient in patients
        ]

    def get_patient_financial_data(
        self, patient_id: Optional[str]
    ) -> Optional[PatientFinancialSummary]:
        """Financial summary for one patient, or None when there is no such patient."""
        if not patient_id or not str(patient_id).strip():
            return None
        patient = self.patient_repo.get_by_id(str(patient_id).strip())
        if patient is None:
            return None
        return self._summaries([patient])[0]

    def get_financial_overview(
        self, params: Optional[Mapping[str, Any]] = None, **overrides: Any
    ) -> Page[PatientFinancialSummary]:
        """Sorted, paginated financial summaries.

        Ties on the sort key are ordered by patient id so pages stay stable.
        """
        query = build_list_query(FINANCIAL_LISTING, params, **overrides)
        started = time.perf_counter()
        patients = self.patient_repo.list_all(query.search)
        summaries = self._summaries(patients, restrict=bool(query.search))

        # Python's sort is stable, also with reverse=True
        summaries.sort(key=lambda summary: summary.id)
        summaries.sort(key=_SORT_KEYS[query.sort_by], reverse=query.descending)

        page_items = summaries[query.offset : query.offset + query.limit]
        log_performance(
            "financial_overview",
            (time.perf_counter() - started) * 1000,
            patients=len(summaries),
            sort_by=query.sort_by,
        )
        return Page.build(page_items, len(summaries), query)

    def search_patients(self, term: Optional[str]) -> List[PatientFinancialSummary]:
        term = (term or "").strip()
        if len(term) < SEARCH_MIN_LENGTH:
            return []
        patients = self.patient_repo.search_by_name(term, SEARCH_RESULT_LIMIT)
        return self._summaries(patients)

    def get_financial_stats(self) -> FinancialStats:
        counts = self.consultation_repo.count_by_patient()
        with_issues = sum(1 for total, paid in counts.values() if total > paid)
        return FinancialStats(
            total_patients=self.patient_repo.count(),
            patients_with_payment_issues=with_issues,
            total_unpaid_consultations=self.consultation_repo.count(paid=False),
            total_credits_in_system=self.patient_repo.total_credits(),
        )

    def get_total_revenue(self) -> Decimal:
        """Sum of the prices of all paid consultations."""
        return self.consultation_repo.paid_revenue()
