"""
Unit tests for FinancialService aggregation, sorting and pagination.
"""

from decimal import Decimal

import pytest

from ebers.core.exceptions import ValidationError
from tests.fixtures.domain_fixtures import make_patient


def _setup(patient_repo, consultation_repo, rows):
    """rows: (patient, total, paid) triples."""
    patients = [patient for patient, _, _ in rows]
    patient_repo.list_all.return_value = patients
    consultation_repo.count_by_patient.return_value = {
        patient.id: (total, paid) for patient, total, paid in rows if total
    }
    return patients


@pytest.mark.unit
@pytest.mark.services
class TestPatientFinancialData:
    def test_summary_for_patient(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        patient = make_patient(credits=4, consultation_price=Decimal("200.00"))
        mock_patient_repo.get_by_id.return_value = patient
        mock_consultation_repo.count_by_patient.return_value = {patient.id: (5, 2)}

        summary = financial_service.get_patient_financial_data(patient.id)

        mock_consultation_repo.count_by_patient.assert_called_once_with([patient.id])
        assert summary.total_consultations == 5
        assert summary.paid_consultations == 2
        assert summary.payment_deficit == 3
        assert summary.available_credits == 4
        assert summary.consultation_price == Decimal("200.00")

    def test_patient_without_consultations(
        self, financial_service, mock_patient_repo
    ):
        mock_patient_repo.get_by_id.return_value = make_patient()

        summary = financial_service.get_patient_financial_data("p")

        assert summary.total_consultations == 0
        assert summary.has_payment_issues is False

    @pytest.mark.parametrize("patient_id", [None, "", "   "])
    def test_blank_id_returns_none(
        self, financial_service, mock_patient_repo, patient_id
    ):
        assert financial_service.get_patient_financial_data(patient_id) is None
        mock_patient_repo.get_by_id.assert_not_called()

    def test_unknown_patient_returns_none(self, financial_service):
        assert financial_service.get_patient_financial_data("missing") is None


@pytest.mark.unit
@pytest.mark.services
class TestFinancialOverview:
    def test_default_sort_is_deficit_desc(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        a = make_patient(name="Ana")
        b = make_patient(name="Bruno")
        c = make_patient(name="Carla")
        _setup(
            mock_patient_repo,
            mock_consultation_repo,
            [(a, 2, 2), (b, 5, 1), (c, 3, 1)],
        )

        page = financial_service.get_financial_overview()

        assert [s.name for s in page.items] == ["Bruno", "Carla", "Ana"]
        assert [s.payment_deficit for s in page.items] == [4, 2, 0]
        assert page.total_count == 3

    def test_sort_by_name_ascending(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        rows = [(make_patient(name=n), 0, 0) for n in ("carla", "Ana", "bruno")]
        _setup(mock_patient_repo, mock_consultation_repo, rows)

        page = financial_service.get_financial_overview(
            {"sort_by": "name", "sort_order": "asc"}
        )

        assert [s.name for s in page.items] == ["Ana", "bruno", "carla"]

    def test_ties_are_ordered_by_id(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        rows = [
            (make_patient(id="p-c", name="C"), 1, 0),
            (make_patient(id="p-a", name="A"), 1, 0),
            (make_patient(id="p-b", name="B"), 1, 0),
        ]
        _setup(mock_patient_repo, mock_consultation_repo, rows)

        desc = financial_service.get_financial_overview()
        asc = financial_service.get_financial_overview({"sort_order": "asc"})

        assert [s.id for s in desc.items] == ["p-a", "p-b", "p-c"]
        assert [s.id for s in asc.items] == ["p-a", "p-b", "p-c"]

    def test_pagination(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        rows = [(make_patient(id=f"p-{i:02d}"), i, 0) for i in range(12)]
        _setup(mock_patient_repo, mock_consultation_repo, rows)

        page = financial_service.get_financial_overview({"page": "2", "limit": "5"})

        assert [s.id for s in page.items] == ["p-06", "p-05", "p-04", "p-03", "p-02"]
        assert page.total_count == 12
        assert page.total_pages == 3
        assert page.has_next_page and page.has_previous_page

    def test_page_beyond_range_is_empty(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        _setup(mock_patient_repo, mock_consultation_repo, [(make_patient(), 1, 0)])

        page = financial_service.get_financial_overview({"page": "9"})

        assert page.items == []
        assert page.total_count == 1

    def test_search_is_forwarded(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        patient = make_patient(name="Ana")
        _setup(mock_patient_repo, mock_consultation_repo, [(patient, 1, 1)])

        financial_service.get_financial_overview({"search": "an"})

        mock_patient_repo.list_all.assert_called_once_with("an")
        mock_consultation_repo.count_by_patient.assert_called_once_with([patient.id])

    def test_invalid_sort_field(self, financial_service):
        with pytest.raises(ValidationError) as exc:
            financial_service.get_financial_overview({"sort_by": "credits"})
        assert exc.value.message == (
            'Campo de ordenação deve ser "name" ou "paymentDeficit"'
        )

    def test_overview_matches_single_patient_view(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        patient = make_patient(credits=1)
        _setup(mock_patient_repo, mock_consultation_repo, [(patient, 4, 3)])
        mock_patient_repo.get_by_id.return_value = patient

        from_overview = financial_service.get_financial_overview().items[0]
        single = financial_service.get_patient_financial_data(patient.id)

        assert from_overview == single


@pytest.mark.unit
@pytest.mark.services
class TestFinancialQueries:
    def test_search_requires_two_characters(self, financial_service, mock_patient_repo):
        assert financial_service.search_patients("a") == []
        assert financial_service.search_patients(None) == []
        mock_patient_repo.search_by_name.assert_not_called()

    def test_search_returns_summaries(
        self, financial_service, mock_patient_repo, mock_consultation_repo
    ):
        patient = make_patient(name="Ana Lima")
        mock_patient_repo.search_by_name.return_value = [patient]
        mock_consultation_repo.count_by_patient.return_value = {patient.id: (2, 1)}

        results = financial_service.search_patients(" ana ")

        mock_patient_repo.search_by_name.assert_called_once_with("ana", 10)
        assert results[0].payment_deficit == 1

    def test_stats(self, financial_service, mock_patient_repo, mock_consultation_repo):
        mock_consultation_repo.count_by_patient.return_value = {
            "a": (3, 3),
            "b": (2, 0),
            "c": (4, 1),
        }
        mock_consultation_repo.count.return_value = 5
        mock_patient_repo.count.return_value = 4
        mock_patient_repo.total_credits.return_value = 12

        stats = financial_service.get_financial_stats()

        assert stats.total_patients == 4
        assert stats.patients_with_payment_issues == 2
        assert stats.total_unpaid_consultations == 5
        assert stats.total_credits_in_system == 12
        mock_consultation_repo.count.assert_called_once_with(paid=False)

    def test_total_revenue(self, financial_service, mock_consultation_repo):
        mock_consultation_repo.paid_revenue.return_value = Decimal("450.00")
        assert financial_service.get_total_revenue() == Decimal("450.00")
