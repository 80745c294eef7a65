"""
JSON serialization of domain objects for API responses.

Dates and timestamps become ISO-8601 strings and money becomes a float with
two decimals; enums are emitted by value.
"""

from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, Optional

from ebers.domain.entities import (Consultation, CreditSaleResult, Patient,
                                   PatientFinancialSummary, PatientListItem,
                                   PatientProjection)
from ebers.services.dashboard_service import DashboardOverview
from ebers.utils.date_utils import isoformat_or_none
from ebers.utils.money import money_to_float


def _enum_value(value: Optional[Enum]) -> Optional[str]:
    return value.value if value is not None else None


def serialize_patient_projection(
    projection: Optional[PatientProjection],
) -> Optional[Dict[str, Any]]:
    if projection is None:
        return None
    return {
        "id": projection.id,
        "name": projection.name,
        "profile_photo": projection.profile_photo,
        "birth_date": isoformat_or_none(projection.birth_date),
        "age": projection.age,
    }


def serialize_patient(patient: Patient) -> Dict[str, Any]:
    return {
        "id": patient.id,
        "name": patient.name,
        "profile_photo": patient.profile_photo,
        "birth_date": isoformat_or_none(patient.birth_date),
        "age": patient.age,
        "gender": _enum_value(patient.gender),
        "cpf": patient.cpf,
        "rg": patient.rg,
        "religion": _enum_value(patient.religion),
        "legal_guardian": patient.legal_guardian,
        "legal_guardian_email": patient.legal_guardian_email,
        "legal_guardian_cpf": patient.legal_guardian_cpf,
        "phone1": patient.phone1,
        "phone2": patient.phone2,
        "email": patient.email,
        "has_therapy_history": patient.has_therapy_history,
        "therapy_history_details": patient.therapy_history_details,
        "therapy_reason": patient.therapy_reason,
        "takes_medication": patient.takes_medication,
        "medication_since": patient.medication_since,
        "medication_names": patient.medication_names,
        "has_hospitalization": patient.has_hospitalization,
        "hospitalization_date": patient.hospitalization_date,
        "hospitalization_reason": patient.hospitalization_reason,
        "consultation_price": money_to_float(patient.consultation_price),
        "consultation_frequency": _enum_value(patient.consultation_frequency),
        "consultation_day": _enum_value(patient.consultation_day),
        "credits": patient.credits,
        "created_at": isoformat_or_none(patient.created_at),
        "updated_at": isoformat_or_none(patient.updated_at),
    }


def serialize_patient_list_item(item: PatientListItem) -> Dict[str, Any]:
    data = serialize_patient(item.patient)
    data["has_active_consultation"] = item.has_active_consultation
    return data


def serialize_consultation(consultation: Consultation) -> Dict[str, Any]:
    return {
        "id": consultation.id,
        "patient_id": consultation.patient_id,
        "status": consultation.status.value,
        "started_at": isoformat_or_none(consultation.started_at),
        "finished_at": isoformat_or_none(consultation.finished_at),
        "content": consultation.content,
        "notes": consultation.notes,
        "price": money_to_float(consultation.price),
        "paid": consultation.paid,
        "paid_at": isoformat_or_none(consultation.paid_at),
        "created_at": isoformat_or_none(consultation.created_at),
        "updated_at": isoformat_or_none(consultation.updated_at),
        "patient": serialize_patient_projection(consultation.patient),
    }


def serialize_financial_summary(summary: PatientFinancialSummary) -> Dict[str, Any]:
    return {
        "id": summary.id,
        "name": summary.name,
        "profile_photo": summary.profile_photo,
        "birth_date": isoformat_or_none(summary.birth_date),
        "age": summary.age,
        "total_consultations": summary.total_consultations,
        "paid_consultations": summary.paid_consultations,
        "available_credits": summary.available_credits,
        "payment_deficit": summary.payment_deficit,
        "has_payment_issues": summary.has_payment_issues,
        "consultation_price": money_to_float(summary.consultation_price),
    }


def serialize_credit_sale(result: CreditSaleResult) -> Dict[str, Any]:
    return {
        "patient_id": result.patient_id,
        "patient_name": result.patient_name,
        "credits_sold": result.credits_sold,
        "unit_price": money_to_float(result.unit_price),
        "total_cost": money_to_float(result.total_cost),
        "new_balance": result.new_balance,
    }


def serialize_stats(stats) -> Dict[str, Any]:
    """Serialize any of the *Stats dataclasses."""
    return asdict(stats)


def serialize_dashboard(overview: DashboardOverview) -> Dict[str, Any]:
    return {
        "patients": serialize_stats(overview.patients),
        "consultations": serialize_stats(overview.consultations),
        "financial": serialize_stats(overview.financial),
        "total_revenue": money_to_float(overview.total_revenue),
        "recent_consultations": [
            serialize_consultation(c) for c in overview.recent_consultations
        ],
    }
