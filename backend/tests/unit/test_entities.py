"""
Unit tests for domain entity invariants and derived values.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ebers.domain.entities import (ConsultationStatus, CreditSaleResult,
                                   PatientFinancialSummary)
from ebers.utils.date_utils import calculate_age, utcnow
from tests.fixtures.domain_fixtures import make_consultation, make_patient


@pytest.mark.unit
class TestPatientEntity:
    def test_name_is_required(self):
        with pytest.raises(ValueError):
            make_patient(name="  ")

    def test_negative_credits_rejected(self):
        with pytest.raises(ValueError):
            make_patient(credits=-1)

    def test_price_match_tolerance(self):
        patient = make_patient(consultation_price=Decimal("150.00"))
        assert patient.price_matches(Decimal("150.00"))
        assert patient.price_matches(Decimal("150.009"))
        assert not patient.price_matches(Decimal("150.01"))
        assert not patient.price_matches(Decimal("149.00"))

    def test_without_price_nothing_matches(self):
        patient = make_patient(consultation_price=None)
        assert patient.has_price is False
        assert patient.price_matches(Decimal("100.00")) is False

    def test_projection(self):
        patient = make_patient(profile_photo="https://img/p.png")
        projection = patient.to_projection()
        assert projection.id == patient.id
        assert projection.name == patient.name
        assert projection.profile_photo == "https://img/p.png"
        assert projection.age == patient.age


@pytest.mark.unit
class TestConsultationEntity:
    def test_open_consultation(self):
        consultation = make_consultation()
        assert consultation.is_open
        assert not consultation.is_finalized
        assert consultation.finished_at is None

    def test_finished_at_only_when_finalized(self):
        with pytest.raises(ValueError):
            make_consultation(status=ConsultationStatus.OPEN, finished_at=utcnow())
        with pytest.raises(ValueError):
            make_consultation(status=ConsultationStatus.FINALIZED, finished_at=None)

    def test_paid_at_only_when_paid(self):
        with pytest.raises(ValueError):
            make_consultation(paid=True, paid_at=None)
        with pytest.raises(ValueError):
            make_consultation(paid=False, paid_at=utcnow())

    def test_price_must_be_positive(self):
        with pytest.raises(ValueError):
            make_consultation(price=Decimal("0"))

    def test_status_and_payment_are_independent(self):
        finalized_unpaid = make_consultation(status=ConsultationStatus.FINALIZED)
        open_paid = make_consultation(paid=True)
        assert finalized_unpaid.is_finalized and not finalized_unpaid.paid
        assert open_paid.is_open and open_paid.paid


@pytest.mark.unit
class TestFinancialSummary:
    def test_deficit_from_counts(self):
        patient = make_patient(credits=2)
        summary = PatientFinancialSummary.from_counts(patient, total=5, paid=3)
        assert summary.payment_deficit == 2
        assert summary.has_payment_issues is True
        assert summary.available_credits == 2
        assert summary.consultation_price == patient.consultation_price

    def test_no_issues_when_all_paid(self):
        summary = PatientFinancialSummary.from_counts(make_patient(), total=0, paid=0)
        assert summary.payment_deficit == 0
        assert summary.has_payment_issues is False

    def test_paid_cannot_exceed_total(self):
        with pytest.raises(ValueError):
            PatientFinancialSummary.from_counts(make_patient(), total=1, paid=2)


@pytest.mark.unit
def test_credit_sale_message():
    result = CreditSaleResult(
        patient_id="p",
        patient_name="Ana",
        credits_sold=3,
        unit_price=Decimal("100.00"),
        total_cost=Decimal("300.00"),
        new_balance=3,
    )
    assert result.message == "3 crédito(s) vendido(s) com sucesso"


@pytest.mark.unit
class TestCalculateAge:
    def test_birthday_not_yet_reached(self):
        assert calculate_age(date(2000, 6, 15), today=date(2024, 6, 14)) == 23

    def test_on_birthday(self):
        assert calculate_age(date(2000, 6, 15), today=date(2024, 6, 15)) == 24

    def test_missing_birth_date(self):
        assert calculate_age(None) == 0

    def test_recent_birth(self):
        today = date(2024, 1, 10)
        assert calculate_age(today - timedelta(days=3), today=today) == 0
