"""
Custom exceptions for the application.

Every error raised by the domain and service layers derives from
``ClinicError`` and carries a user-facing (Portuguese) message plus the HTTP
status the API layer should answer with. Errors are raised where they are
detected and propagate unchanged to the caller; nothing here retries or
recovers.
"""

from typing import Any, Dict, Optional


class ClinicError(Exception):
    """Base class for all application errors."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ClinicError):
    """
    Malformed or out-of-range input.

    ``details`` maps field names to messages so forms can show them next to
    the offending input.
    """

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, str]] = None,
        field: Optional[str] = None,
    ):
        if field and not details:
            details = {field: message}
        super().__init__(message, details)
        self.field = field


class NotFoundError(ClinicError):
    """Referenced entity does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"


class BusinessRuleError(ClinicError):
    """The operation conflicts with the current state of the data."""

    status_code = 400
    error_code = "BUSINESS_RULE"


class NotEligibleError(BusinessRuleError):
    """Patient cannot buy credits because no consultation price is set."""

    error_code = "NOT_ELIGIBLE"


class PriceMismatchError(BusinessRuleError):
    """Unit price offered for a credit sale differs from the patient's price."""

    error_code = "PRICE_MISMATCH"


class PersistenceError(ClinicError):
    """
    Underlying store failure.

    The message is prefixed with the operation that failed, e.g.
    ``"Erro ao finalizar consulta: <cause>"``.
    """

    status_code = 500
    error_code = "PERSISTENCE_ERROR"


class OpenConsultationExistsError(BusinessRuleError):
    """Patient already has a consultation that has not been finalized."""

    error_code = "OPEN_CONSULTATION_EXISTS"
    default_message = (
        "Paciente possui consulta não finalizada. "
        "Finalize a consulta atual antes de criar uma nova."
    )

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class PatientNotFoundError(NotFoundError):
    def __init__(self, message: str = "Paciente não encontrado"):
        super().__init__(message)


class ConsultationNotFoundError(NotFoundError):
    def __init__(self, message: str = "Consulta não encontrada"):
        super().__init__(message)
