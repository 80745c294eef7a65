"""Dashboard aggregate: the numbers shown on the clinic's home screen."""

from dataclasses import dataclass
from decimal import Decimal
from typing import List

from ebers.domain.entities import (Consultation, ConsultationStats,
                                   FinancialStats, PatientStats)
from ebers.services.consultation_service import ConsultationService
from ebers.services.financial_service import FinancialService
from ebers.services.patient_service import PatientService


@dataclass
class DashboardOverview:
    patients: PatientStats
    consultations: ConsultationStats
    financial: FinancialStats
    total_revenue: Decimal
    recent_consultations: List[Consultation]


class DashboardService:
    def __init__(
        self,
        patient_service: PatientService,
        consultation_service: ConsultationService,
        financial_service: FinancialService,
    ):
        self.patient_service = patient_service
        self.consultation_service = consultation_service
        self.financial_service = financial_service

    def get_overview(self) -> DashboardOverview:
        return DashboardOverview(
            patients=self.patient_service.get_patient_stats(),
            consultations=self.consultation_service.get_consultation_stats(),
            financial=self.financial_service.get_financial_stats(),
            total_revenue=self.financial_service.get_total_revenue(),
            recent_consultations=self.consultation_service.get_recent_consultations(),
        )
