"""Dashboard endpoint."""

from flask import Blueprint

from ebers.controllers.dependencies import get_services
from ebers.core.api_utils import api_response
from ebers.schemas.serializers import serialize_dashboard

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.route("", methods=["GET"])
def dashboard():
    overview = get_services().dashboard.get_overview()
    return api_response(True, "Painel carregado com sucesso", serialize_dashboard(overview))
