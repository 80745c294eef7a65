"""
Financial endpoints: overview, per-patient summary, stats, revenue and search.
"""

import logging

from flask import Blueprint, request

from ebers.controllers.dependencies import get_services
from ebers.core.api_utils import api_response
from ebers.core.exceptions import PatientNotFoundError
from ebers.schemas.serializers import (serialize_financial_summary,
                                       serialize_stats)
from ebers.utils.money import money_to_float

logger = logging.getLogger(__name__)

financial_bp = Blueprint("financial", __name__, url_prefix="/api/financial")


@financial_bp.route("", methods=["GET"])
def financial_overview():
    financial = get_services().financial
    if request.args.get("stats", "").lower() == "true":
        stats = financial.get_financial_stats()
        return api_response(True, "Estatísticas financeiras", serialize_stats(stats))

    page = financial.get_financial_overview(request.args)
    return api_response(
        True,
        "Dados financeiros recuperados com sucesso",
        page.to_dict(serialize_financial_summary),
    )


@financial_bp.route("/patients/<patient_id>", methods=["GET"])
def patient_financial_data(patient_id: str):
    summary = get_services().financial.get_patient_financial_data(patient_id)
    if summary is None:
        raise PatientNotFoundError()
    return api_response(
        True, "Dados financeiros do paciente", serialize_financial_summary(summary)
    )


@financial_bp.route("/revenue", methods=["GET"])
def total_revenue():
    revenue = get_services().financial.get_total_revenue()
    return api_response(True, "Receita total", {"total_revenue": money_to_float(revenue)})


@financial_bp.route("/search-patients", methods=["GET"])
def search_patients():
    summaries = get_services().financial.search_patients(request.args.get("q"))
    return api_response(
        True,
        "Busca realizada com sucesso",
        [serialize_financial_summary(s) for s in summaries],
    )
