"""
Unit tests for PatientService.
"""

from decimal import Decimal

import pytest

from ebers.core.exceptions import (BusinessRuleError, PatientNotFoundError,
                                   ValidationError)
from ebers.core.pagination import Page
from tests.fixtures.domain_fixtures import make_patient, patient_payload


@pytest.mark.unit
@pytest.mark.services
class TestPatientService:
    def test_create_patient(self, patient_service, mock_patient_repo, fake_transactions):
        mock_patient_repo.create.side_effect = lambda patient: patient

        patient = patient_service.create_patient(patient_payload(credits=2))

        assert patient.name == "Maria Souza"
        assert patient.credits == 2
        assert patient.consultation_price == Decimal("150.00")
        assert fake_transactions.contexts == ["Erro ao criar paciente"]
        assert fake_transactions.committed == 1

    def test_create_invalid_payload(self, patient_service, mock_patient_repo):
        with pytest.raises(ValidationError):
            patient_service.create_patient(patient_payload(name=""))
        mock_patient_repo.create.assert_not_called()

    def test_update_ignores_id_and_refuses_credits(
        self, patient_service, mock_patient_repo
    ):
        with pytest.raises(ValidationError) as exc:
            patient_service.update_patient("p", {"id": "other", "credits": 50})
        assert exc.value.field == "credits"
        mock_patient_repo.update.assert_not_called()

    def test_update_patient(self, patient_service, mock_patient_repo):
        updated = make_patient(phone2="(11) 2222-3333")
        mock_patient_repo.update.return_value = updated

        result = patient_service.update_patient("p", {"id": "p", "phone2": "(11) 2222-3333"})

        mock_patient_repo.update.assert_called_once_with("p", {"phone2": "(11) 2222-3333"})
        assert result is updated

    def test_update_unknown_patient(self, patient_service, mock_patient_repo):
        mock_patient_repo.update.return_value = None
        with pytest.raises(PatientNotFoundError):
            patient_service.update_patient("missing", {"phone2": "1"})

    def test_get_unknown_patient(self, patient_service):
        with pytest.raises(PatientNotFoundError) as exc:
            patient_service.get_patient("missing")
        assert exc.value.message == "Paciente não encontrado"

    def test_delete_patient(self, patient_service, mock_patient_repo, mock_consultation_repo):
        mock_patient_repo.get_by_id.return_value = make_patient()
        mock_consultation_repo.count.return_value = 0

        patient_service.delete_patient("p")

        mock_patient_repo.delete.assert_called_once_with("p")

    def test_delete_with_consultations_is_rejected(
        self, patient_service, mock_patient_repo, mock_consultation_repo
    ):
        mock_patient_repo.get_by_id.return_value = make_patient()
        mock_consultation_repo.count.return_value = 2

        with pytest.raises(BusinessRuleError):
            patient_service.delete_patient("p")

        mock_consultation_repo.count.assert_called_once_with(patient_id="p")
        mock_patient_repo.delete.assert_not_called()

    def test_list_flags_active_consultations(
        self, patient_service, mock_patient_repo, mock_consultation_repo
    ):
        a, b = make_patient(), make_patient()
        mock_patient_repo.list.return_value = Page([a, b], 2, 1, 10)
        mock_consultation_repo.patients_with_open_consultation.return_value = {b.id}

        page = patient_service.list_patients({"sort_by": "age"})

        assert [item.has_active_consultation for item in page.items] == [False, True]
        assert mock_patient_repo.list.call_args.args[0].sort_by == "age"

    def test_search_short_term(self, patient_service, mock_patient_repo):
        assert patient_service.search_patients("a") == []
        mock_patient_repo.search_by_name.assert_not_called()

    def test_stats(self, patient_service, mock_patient_repo, mock_consultation_repo):
        mock_patient_repo.count.side_effect = lambda with_credits=False: 3 if with_credits else 8
        mock_consultation_repo.patients_with_open_consultation.return_value = {"a", "b"}

        stats = patient_service.get_patient_stats()

        assert (stats.total, stats.with_credits, stats.with_active_consultations) == (8, 3, 2)
