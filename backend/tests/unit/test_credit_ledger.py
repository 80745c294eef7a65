"""
Unit tests for CreditLedger: credit sales and per-consultation debits.
"""

from decimal import Decimal

import pytest

from ebers.core.exceptions import (BusinessRuleError, NotEligibleError,
                                   PatientNotFoundError, PriceMismatchError,
                                   ValidationError)
from tests.fixtures.domain_fixtures import make_consultation, make_patient


@pytest.mark.unit
@pytest.mark.services
class TestCreditSale:
    def test_sell_adds_credits(self, ledger, mock_patient_repo, fake_transactions):
        patient = make_patient(credits=1, consultation_price=Decimal("150.00"))
        mock_patient_repo.get_by_id.return_value = patient
        mock_patient_repo.add_credits.return_value = 6

        result = ledger.sell(patient.id, 5, "150")

        mock_patient_repo.add_credits.assert_called_once_with(patient.id, 5)
        assert result.credits_sold == 5
        assert result.unit_price == Decimal("150.00")
        assert result.total_cost == Decimal("750.00")
        assert result.new_balance == 6
        assert result.patient_name == patient.name
        assert fake_transactions.committed == 1

    def test_price_within_tolerance_is_accepted(self, ledger, mock_patient_repo):
        patient = make_patient(consultation_price=Decimal("150.00"))
        mock_patient_repo.get_by_id.return_value = patient
        mock_patient_repo.add_credits.return_value = 1

        result = ledger.sell(patient.id, 1, 150.004)

        assert result.new_balance == 1

    def test_unknown_patient(self, ledger, mock_patient_repo, fake_transactions):
        mock_patient_repo.get_by_id.return_value = None

        with pytest.raises(PatientNotFoundError):
            ledger.sell("missing", 1, 100)

        mock_patient_repo.add_credits.assert_not_called()
        assert fake_transactions.rolled_back == 1

    def test_patient_without_price_is_not_eligible(self, ledger, mock_patient_repo):
        mock_patient_repo.get_by_id.return_value = make_patient(consultation_price=None)

        with pytest.raises(NotEligibleError) as exc:
            ledger.sell("p", 1, 100)

        assert exc.value.message == (
            "Não é possível vender créditos. Valor da consulta não foi estabelecido."
        )
        mock_patient_repo.add_credits.assert_not_called()

    def test_price_mismatch(self, ledger, mock_patient_repo):
        mock_patient_repo.get_by_id.return_value = make_patient(
            consultation_price=Decimal("150.00")
        )

        with pytest.raises(PriceMismatchError) as exc:
            ledger.sell("p", 2, 140)

        assert exc.value.details == {
            "unit_price": "140.00",
            "consultation_price": "150.00",
        }
        assert isinstance(exc.value, BusinessRuleError)
        mock_patient_repo.add_credits.assert_not_called()

    @pytest.mark.parametrize("quantity", [0, 101, -3])
    def test_quantity_out_of_range(self, ledger, mock_patient_repo, quantity):
        with pytest.raises(ValidationError):
            ledger.sell("p", quantity, 100)
        mock_patient_repo.get_by_id.assert_not_called()

    def test_blank_patient_id(self, ledger):
        with pytest.raises(ValidationError):
            ledger.sell("  ", 1, 100)

    def test_patient_deleted_between_read_and_write(self, ledger, mock_patient_repo):
        mock_patient_repo.get_by_id.return_value = make_patient()
        mock_patient_repo.add_credits.return_value = None

        with pytest.raises(PatientNotFoundError):
            ledger.sell("p", 1, 100)


@pytest.mark.unit
@pytest.mark.services
class TestCreditConsumption:
    def test_consume_for_paid_consultation(self, ledger, mock_patient_repo):
        consultation = make_consultation(patient_id="p-1", paid=True)

        ledger.consume_for(consultation)

        mock_patient_repo.consume_credit.assert_called_once_with("p-1")

    def test_balance_exhausted(self, ledger, mock_patient_repo):
        mock_patient_repo.consume_credit.return_value = False

        with pytest.raises(BusinessRuleError) as exc:
            ledger.consume_for(make_consultation(paid=True))

        assert exc.value.message == "Paciente não possui créditos disponíveis"

    def test_unpaid_consultation_never_debits(self, ledger, mock_patient_repo):
        with pytest.raises(BusinessRuleError) as exc:
            ledger.consume_for(make_consultation(paid=False))
        assert exc.value.message == "Consulta não paga não consome crédito"
        mock_patient_repo.consume_credit.assert_not_called()
