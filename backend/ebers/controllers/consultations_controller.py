"""
Consultation endpoints: open, finalize, pay, edit notes and delete.
"""

import logging

from flask import Blueprint, request

from ebers.controllers.dependencies import get_services
from ebers.core.api_utils import api_response, get_json_body
from ebers.core.exceptions import ValidationError
from ebers.core.pagination import parse_int_param
from ebers.schemas.serializers import serialize_consultation, serialize_stats

logger = logging.getLogger(__name__)

consultations_bp = Blueprint(
    "consultations", __name__, url_prefix="/api/consultations"
)


@consultations_bp.route("", methods=["GET"])
def list_consultations():
    page = get_services().consultations.list_consultations(request.args)
    return api_response(
        True,
        "Consultas recuperadas com sucesso",
        page.to_dict(serialize_consultation),
    )


@consultations_bp.route("", methods=["POST"])
def create_consultation():
    body = get_json_body()
    consultation = get_services().consultations.create_consultation(
        body.get("patient_id"), body.get("price")
    )
    return api_response(
        True,
        "Consulta iniciada com sucesso",
        serialize_consultation(consultation),
        201,
    )


@consultations_bp.route("/stats", methods=["GET"])
def consultation_stats():
    stats = get_services().consultations.get_consultation_stats()
    return api_response(True, "Estatísticas de consultas", serialize_stats(stats))


@consultations_bp.route("/recent", methods=["GET"])
def recent_consultations():
    limit = parse_int_param(request.args.get("limit", "3"))
    if limit is None or not 1 <= limit <= 100:
        raise ValidationError("Limite deve estar entre 1 e 100", field="limit")
    consultations = get_services().consultations.get_recent_consultations(limit)
    return api_response(
        True,
        "Consultas recentes",
        [serialize_consultation(c) for c in consultations],
    )


@consultations_bp.route("/<consultation_id>", methods=["GET"])
def get_consultation(consultation_id: str):
    consultation = get_services().consultations.get_consultation(consultation_id)
    return api_response(
        True, "Consulta recuperada com sucesso", serialize_consultation(consultation)
    )


@consultations_bp.route("/<consultation_id>", methods=["PUT", "PATCH"])
def update_consultation(consultation_id: str):
    consultation = get_services().consultations.update_consultation(
        consultation_id, get_json_body()
    )
    return api_response(
        True, "Consulta atualizada com sucesso", serialize_consultation(consultation)
    )


@consultations_bp.route("/<consultation_id>", methods=["DELETE"])
def delete_consultation(consultation_id: str):
    get_services().consultations.delete_consultation(consultation_id)
    return api_response(True, "Consulta excluída com sucesso")


@consultations_bp.route("/<consultation_id>/finalize", methods=["POST"])
def finalize_consultation(consultation_id: str):
    consultation = get_services().consultations.finalize_consultation(consultation_id)
    return api_response(
        True, "Consulta finalizada com sucesso", serialize_consultation(consultation)
    )


@consultations_bp.route("/<consultation_id>/pay", methods=["POST"])
def pay_consultation(consultation_id: str):
    consultation = get_services().consultations.pay_consultation(consultation_id)
    return api_response(
        True, "Pagamento registrado com sucesso", serialize_consultation(consultation)
    )
