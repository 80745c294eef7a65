"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities with business rules
- interfaces.py: Repository and transaction contracts
"""

from .entities import (Consultation, ConsultationStatus, Patient,
                       PatientFinancialSummary, PatientProjection)

__all__ = [
    "Consultation",
    "ConsultationStatus",
    "Patient",
    "PatientFinancialSummary",
    "PatientProjection",
]
