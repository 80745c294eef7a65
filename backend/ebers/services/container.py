"""Wires repositories and services around one database session."""

from dataclasses import dataclass

from ebers.repositories.consultation_repo import ConsultationRepository
from ebers.repositories.patient_repo import PatientRepository
from ebers.repositories.transaction import SqlAlchemyTransactionManager
from ebers.services.consultation_service import ConsultationService
from ebers.services.credit_ledger import CreditLedger
from ebers.services.dashboard_service import DashboardService
from ebers.services.financial_service import FinancialService
from ebers.services.patient_service import PatientService


@dataclass
class ServiceContainer:
    patients: PatientService
    consultations: ConsultationService
    credits: CreditLedger
    financial: FinancialService
    dashboard: DashboardService

    @classmethod
    def from_session(cls, db_session) -> "ServiceContainer":
        patient_repo = PatientRepository(db_session)
        consultation_repo = ConsultationRepository(db_session)
        transactions = SqlAlchemyTransactionManager(db_session)

        ledger = CreditLedger(patient_repo, transactions)
        patients = PatientService(patient_repo, consultation_repo, transactions)
        consultations = ConsultationService(
            consultation_repo, patient_repo, ledger, transactions
        )
        financial = FinancialService(patient_repo, consultation_repo)
        return cls(
            patients=patients,
            consultations=consultations,
            credits=ledger,
            financial=financial,
            dashboard=DashboardService(patients, consultations, financial),
        )
