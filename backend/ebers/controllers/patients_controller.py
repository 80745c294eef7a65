"""
Patient endpoints: registration, profile, listing, search and credit sales.
"""

import logging

from flask import Blueprint, request

from ebers.controllers.dependencies import get_services
from ebers.core.api_utils import api_response, get_json_body
from ebers.schemas.serializers import (serialize_consultation,
                                       serialize_credit_sale,
                                       serialize_patient,
                                       serialize_patient_list_item,
                                       serialize_stats)

logger = logging.getLogger(__name__)

patients_bp = Blueprint("patients", __name__, url_prefix="/api/patients")


@patients_bp.route("", methods=["GET"])
def list_patients():
    page = get_services().patients.list_patients(request.args)
    return api_response(
        True,
        "Pacientes recuperados com sucesso",
        page.to_dict(serialize_patient_list_item),
    )


@patients_bp.route("", methods=["POST"])
def create_patient():
    patient = get_services().patients.create_patient(get_json_body())
    return api_response(
        True, "Paciente cadastrado com sucesso", serialize_patient(patient), 201
    )


@patients_bp.route("/search", methods=["GET"])
def search_patients():
    items = get_services().patients.search_patients(request.args.get("q"))
    return api_response(
        True,
        "Busca realizada com sucesso",
        [serialize_patient_list_item(item) for item in items],
    )


@patients_bp.route("/stats", methods=["GET"])
def patient_stats():
    stats = get_services().patients.get_patient_stats()
    return api_response(True, "Estatísticas de pacientes", serialize_stats(stats))


@patients_bp.route("/<patient_id>", methods=["GET"])
def get_patient(patient_id: str):
    patient = get_services().patients.get_patient(patient_id)
    return api_response(True, "Paciente recuperado com sucesso", serialize_patient(patient))


@patients_bp.route("/<patient_id>", methods=["PUT", "PATCH"])
def update_patient(patient_id: str):
    patient = get_services().patients.update_patient(patient_id, get_json_body())
    return api_response(True, "Paciente atualizado com sucesso", serialize_patient(patient))


@patients_bp.route("/<patient_id>", methods=["DELETE"])
def delete_patient(patient_id: str):
    get_services().patients.delete_patient(patient_id)
    return api_response(True, "Paciente excluído com sucesso")


@patients_bp.route("/<patient_id>/credits", methods=["POST"])
def sell_credits(patient_id: str):
    body = get_json_body()
    result = get_services().credits.sell(
        patient_id, body.get("quantity"), body.get("unit_price")
    )
    return api_response(True, result.message, serialize_credit_sale(result))


@patients_bp.route("/<patient_id>/active-consultation", methods=["GET"])
def active_consultation(patient_id: str):
    consultation = get_services().consultations.get_active_consultation(patient_id)
    if consultation is None:
        return api_response(True, "Nenhuma consulta em andamento", {"consultation": None})
    return api_response(
        True,
        "Consulta em andamento",
        {"consultation": serialize_consultation(consultation)},
    )


@patients_bp.route("/<patient_id>/consultations", methods=["GET"])
def patient_consultations(patient_id: str):
    page = get_services().consultations.get_patient_consultations(
        patient_id, request.args
    )
    return api_response(
        True,
        "Consultas recuperadas com sucesso",
        page.to_dict(serialize_consultation),
    )
