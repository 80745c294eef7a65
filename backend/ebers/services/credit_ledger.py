"""
Credit ledger: prepaid consultation credits.

Credits enter the balance only through ``sell`` and leave it only through
``consume_for``, which the consultation service calls while opening a
consultation inside its own transaction.
"""

import logging
from decimal import Decimal

from ebers.core.exceptions import (BusinessRuleError, NotEligibleError,
                                   PatientNotFoundError, PriceMismatchError)
from ebers.core.validation import require_id, validate_payload
from ebers.domain.entities import Consultation, CreditSaleResult
from ebers.domain.interfaces import IPatientRepository, ITransactionManager
from ebers.utils.money import to_money

logger = logging.getLogger(__name__)

NOT_ELIGIBLE_MESSAGE = (
    "Não é possível vender créditos. Valor da consulta não foi estabelecido."
)
PRICE_MISMATCH_MESSAGE = (
    "Preço unitário deve corresponder ao valor da consulta do paciente"
)
NO_CREDITS_MESSAGE = "Paciente não possui créditos disponíveis"


class CreditLedger:
    """Applies integer credit balance changes to patients."""

    def __init__(
        self, patient_repo: IPatientRepository, transactions: ITransactionManager
    ):
        self.patient_repo = patient_repo
        self.transactions = transactions

    def sell(self, patient_id: str, quantity, unit_price) -> CreditSaleResult:
        """Sell ``quantity`` credits at ``unit_price`` each.

        Business Rules:
        - 1 <= quantity <= 100, unit price positive
        - Patient must exist and have a consultation price
        - Unit price must match the patient's current price within 0.01, so a
          profile edited concurrently cannot be sold at a stale price
        """
        patient_id = require_id(patient_id, "ID do paciente é obrigatório", "patient_id")
        data = validate_payload(
            "credit_sale", {"quantity": quantity, "unit_price": unit_price}
        )
        quantity = data["quantity"]
        unit_price: Decimal = data["unit_price"]

        with self.transactions.transaction("Erro ao vender créditos"):
            patient = self.patient_repo.get_by_id(patient_id)
            if patient is None:
                raise PatientNotFoundError()
            if not patient.has_price:
                raise NotEligibleError(NOT_ELIGIBLE_MESSAGE)
            if not patient.price_matches(unit_price):
                raise PriceMismatchError(
                    PRICE_MISMATCH_MESSAGE,
                    details={
                        "unit_price": str(unit_price),
                        "consultation_price": str(patient.consultation_price),
                    },
                )
            new_balance = self.patient_repo.add_credits(patient_id, quantity)
            if new_balance is None:
                raise PatientNotFoundError()

        result = CreditSaleResult(
            patient_id=patient.id,
            patient_name=patient.name,
            credits_sold=quantity,
            unit_price=unit_price,
            total_cost=to_money(unit_price * quantity),
            new_balance=new_balance,
        )
        logger.info(
            "Credits sold",
            extra={
                "context": {
                    "patient_id": patient.id,
                    "quantity": quantity,
                    "total_cost": str(result.total_cost),
                    "new_balance": new_balance,
                }
            },
        )
        return result

    def consume_for(self, consultation: Consultation) -> None:
        """Debit one credit to pay for ``consultation`` as it is opened.

        Must run inside the caller's transaction so the debit and the new
        consultation commit or roll back together.
        """
        if not consultation.paid:
            raise BusinessRuleError("Consulta não paga não consome crédito")
        if not self.patient_repo.consume_credit(consultation.patient_id):
            raise BusinessRuleError(NO_CREDITS_MESSAGE)
        logger.info(
            "Credit consumed",
            extra={
                "context": {
                    "patient_id": consultation.patient_id,
                    "consultation_id": consultation.id,
                }
            },
        )
