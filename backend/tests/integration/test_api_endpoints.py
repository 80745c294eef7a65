"""
API tests through the Flask test client.

Checks the JSON envelope, status code mapping and the request paths that tie
patients, consultations, credits and the financial views together.
"""

import pytest

from tests.fixtures.domain_fixtures import patient_payload


def _create_patient(client, **overrides):
    response = client.post("/api/patients", json=patient_payload(**overrides))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _open_consultation(client, patient_id, **body):
    return client.post("/api/consultations", json={"patient_id": patient_id, **body})


@pytest.mark.integration
@pytest.mark.api
class TestPatientEndpoints:
    def test_create_and_get(self, client):
        created = _create_patient(client, name="Lia Martins")

        response = client.get(f"/api/patients/{created['id']}")

        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["name"] == "Lia Martins"
        assert body["data"]["consultation_price"] == 150.0
        assert body["data"]["credits"] == 0

    def test_validation_error_details(self, client):
        response = client.post("/api/patients", json={"name": ""})

        body = response.get_json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["details"]["name"] == "Nome é obrigatório"

    def test_sub_cent_patient_price(self, client):
        response = client.post(
            "/api/patients", json=patient_payload(consultation_price="0.001")
        )

        assert response.status_code == 400
        assert response.get_json()["details"] == {
            "consultation_price": "Valor deve ser maior que zero"
        }

    @pytest.mark.parametrize("page", ["--1", "²"])
    def test_malformed_page_number(self, client, page):
        response = client.get("/api/patients", query_string={"page": page})
        assert response.status_code == 400
        assert response.get_json()["details"] == {"page": "Página deve ser maior que 0"}

    def test_non_json_body(self, client):
        response = client.post("/api/patients", data="nome=Ana")
        assert response.status_code == 400
        assert response.get_json()["message"] == (
            "Corpo da requisição deve ser um objeto JSON"
        )

    def test_unknown_patient_is_404(self, client):
        response = client.get("/api/patients/does-not-exist")
        assert response.status_code == 404
        assert response.get_json()["message"] == "Paciente não encontrado"

    def test_list_with_active_flag(self, client):
        ana = _create_patient(client, name="Ana")
        _create_patient(client, name="Bia")
        _open_consultation(client, ana["id"])

        response = client.get("/api/patients?sort_by=name&sort_order=asc")

        data = response.get_json()["data"]
        assert data["total_count"] == 2
        assert [p["has_active_consultation"] for p in data["items"]] == [True, False]

    def test_invalid_listing_parameter(self, client):
        response = client.get("/api/patients?limit=500")
        body = response.get_json()
        assert response.status_code == 400
        assert body["details"] == {"limit": "Limite deve estar entre 1 e 100"}

    def test_update_cannot_touch_credits(self, client):
        patient = _create_patient(client)

        response = client.patch(f"/api/patients/{patient['id']}", json={"credits": 99})

        assert response.status_code == 400
        assert client.get(f"/api/patients/{patient['id']}").get_json()["data"]["credits"] == 0

    def test_sell_credits(self, client):
        patient = _create_patient(client, consultation_price=120)

        response = client.post(
            f"/api/patients/{patient['id']}/credits",
            json={"quantity": 3, "unit_price": 120},
        )

        body = response.get_json()
        assert response.status_code == 200
        assert body["message"] == "3 crédito(s) vendido(s) com sucesso"
        assert body["data"]["new_balance"] == 3
        assert body["data"]["total_cost"] == 360.0

    def test_sell_credits_price_mismatch(self, client):
        patient = _create_patient(client, consultation_price=120)

        response = client.post(
            f"/api/patients/{patient['id']}/credits",
            json={"quantity": 1, "unit_price": 100},
        )

        assert response.status_code == 400
        assert response.get_json()["details"]["consultation_price"] == "120.00"

    def test_delete_patient_with_consultations(self, client):
        patient = _create_patient(client)
        _open_consultation(client, patient["id"])

        response = client.delete(f"/api/patients/{patient['id']}")

        assert response.status_code == 400


@pytest.mark.integration
@pytest.mark.api
class TestConsultationEndpoints:
    def test_full_lifecycle(self, client):
        patient = _create_patient(client, consultation_price=100)

        created = _open_consultation(client, patient["id"])
        assert created.status_code == 201
        consultation = created.get_json()["data"]
        assert consultation["status"] == "OPEN"
        assert consultation["paid"] is False
        assert consultation["price"] == 100.0
        assert consultation["patient"]["id"] == patient["id"]

        cid = consultation["id"]
        updated = client.patch(f"/api/consultations/{cid}", json={"notes": "retorno"})
        assert updated.get_json()["data"]["notes"] == "retorno"

        finalized = client.post(f"/api/consultations/{cid}/finalize")
        assert finalized.get_json()["data"]["status"] == "FINALIZED"
        assert finalized.get_json()["data"]["finished_at"] is not None

        paid = client.post(f"/api/consultations/{cid}/pay")
        assert paid.get_json()["data"]["paid"] is True

        again = client.post(f"/api/consultations/{cid}/pay")
        assert again.status_code == 400
        assert again.get_json()["message"] == "Consulta já está paga"

    def test_second_open_consultation(self, client):
        patient = _create_patient(client)
        _open_consultation(client, patient["id"])

        response = _open_consultation(client, patient["id"])

        assert response.status_code == 400
        assert "consulta não finalizada" in response.get_json()["message"]

    def test_active_consultation_endpoint(self, client):
        patient = _create_patient(client)

        empty = client.get(f"/api/patients/{patient['id']}/active-consultation")
        assert empty.status_code == 200
        assert empty.get_json()["data"] == {"consultation": None}

        opened = _open_consultation(client, patient["id"]).get_json()["data"]
        active = client.get(f"/api/patients/{patient['id']}/active-consultation")
        assert active.get_json()["data"]["consultation"]["id"] == opened["id"]

    def test_unknown_consultation(self, client):
        response = client.post("/api/consultations/missing/finalize")
        assert response.status_code == 404
        assert response.get_json()["message"] == "Consulta não encontrada"

    def test_status_filter_validation(self, client):
        response = client.get("/api/consultations?status=CLOSED")
        assert response.status_code == 400
        assert "status" in response.get_json()["details"]

    def test_sub_cent_explicit_price(self, client):
        patient = _create_patient(client, consultation_price=100)

        response = _open_consultation(client, patient["id"], price="0.004")

        assert response.status_code == 400
        assert response.get_json()["message"] == "Preço deve ser positivo"
        active = client.get(f"/api/patients/{patient['id']}/active-consultation")
        assert active.get_json()["data"] == {"consultation": None}

    @pytest.mark.parametrize("limit", ["²", "--1", "0"])
    def test_recent_limit_validation(self, client, limit):
        response = client.get(
            "/api/consultations/recent", query_string={"limit": limit}
        )
        assert response.status_code == 400
        assert response.get_json()["message"] == "Limite deve estar entre 1 e 100"

    def test_update_forbidden_field(self, client):
        patient = _create_patient(client)
        cid = _open_consultation(client, patient["id"]).get_json()["data"]["id"]

        response = client.put(f"/api/consultations/{cid}", json={"paid": True})

        assert response.status_code == 400
        assert response.get_json()["details"] == {"paid": "Campo não pode ser alterado"}


@pytest.mark.integration
@pytest.mark.api
class TestFinancialAndDashboardEndpoints:
    def test_financial_overview_and_patient(self, client):
        patient = _create_patient(client, name="Rui Alves")
        _open_consultation(client, patient["id"])

        overview = client.get("/api/financial").get_json()["data"]
        single = client.get(f"/api/financial/patients/{patient['id']}").get_json()["data"]

        assert overview["items"][0] == single
        assert single["payment_deficit"] == 1
        assert single["has_payment_issues"] is True

    def test_financial_unknown_patient(self, client):
        response = client.get("/api/financial/patients/nobody")
        assert response.status_code == 404

    def test_financial_stats(self, client):
        _create_patient(client, credits=2)

        response = client.get("/api/financial?stats=true")

        assert response.get_json()["data"]["total_credits_in_system"] == 2

    def test_financial_search(self, client):
        _create_patient(client, name="Helena Moura")

        short = client.get("/api/financial/search-patients?q=h").get_json()["data"]
        found = client.get("/api/financial/search-patients?q=hel").get_json()["data"]

        assert short == []
        assert [s["name"] for s in found] == ["Helena Moura"]

    def test_revenue(self, client):
        patient = _create_patient(client, consultation_price=90)
        cid = _open_consultation(client, patient["id"]).get_json()["data"]["id"]
        client.post(f"/api/consultations/{cid}/pay")

        response = client.get("/api/financial/revenue")

        assert response.get_json()["data"] == {"total_revenue": 90.0}

    def test_dashboard(self, client):
        patient = _create_patient(client, credits=1)
        _open_consultation(client, patient["id"])

        data = client.get("/api/dashboard").get_json()["data"]

        assert data["patients"]["total"] == 1
        assert data["patients"]["with_active_consultations"] == 1
        assert data["consultations"]["paid"] == 1
        assert len(data["recent_consultations"]) == 1

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["data"] == {"database": "up"}

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
