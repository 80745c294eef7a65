"""
Common validation utilities for the Ebers API and services.

Validators turn raw payloads (JSON bodies, form data, keyword arguments)
into cleaned, typed values. Every problem is collected per field so the
caller can show all messages at once; ``ValidationResult.raise_if_invalid``
then raises a single ``ValidationError`` carrying the field -> message map.
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from ebers.core.config import (MAX_CONSULTATION_TEXT_LENGTH,
                               MAX_CREDITS_PER_SALE, MAX_PRICE)
from ebers.core.exceptions import ValidationError
from ebers.domain.entities import (ConsultationFrequency, DayOfWeek, Gender,
                                   Religion)
from ebers.utils.date_utils import local_today
from ebers.utils.money import to_money

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHOTO_PREFIXES = ("data:image/", "http://", "https://")
_TRUE_STRINGS = ("true", "1", "yes", "sim")
_FALSE_STRINGS = ("false", "0", "no", "nao", "não")


class ValidationResult:
    """Container for validation results."""

    def __init__(self):
        self.errors: Dict[str, str] = {}
        self.cleaned_data: Dict[str, Any] = {}

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str, field: Optional[str] = None):
        """Add validation error. The first message per field wins."""
        key = field or "_"
        self.errors.setdefault(key, message)
        logger.debug(
            "Validation error",
            extra={"context": {"field": key, "error": message}},
        )

    def raise_if_invalid(self, message: str = "Dados inválidos"):
        """Raise ``ValidationError`` when any error was collected.

        With a single error its own message becomes the exception message.
        """
        if self.is_valid:
            return
        if len(self.errors) == 1:
            field, only = next(iter(self.errors.items()))
            raise ValidationError(only, details=dict(self.errors), field=field)
        raise ValidationError(message, details=dict(self.errors))


def require_id(value: Any, message: str, field: str = "id") -> str:
    """Return the stripped id or raise when it is missing or blank."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(message, field=field)
    return value.strip()


def format_choices(values: Iterable[str]) -> str:
    """``["a", "b", "c"]`` -> ``"a", "b" ou "c"``."""
    quoted = [f'"{v}"' for v in values]
    if len(quoted) <= 1:
        return "".join(quoted)
    return f"{', '.join(quoted[:-1])} ou {quoted[-1]}"


class BaseValidator:
    """Base validator with common validation methods."""

    def validate(
        self, data: Dict[str, Any]
    ) -> ValidationResult:  # pragma: no cover - interface definition
        """Validate data for a specific entity type."""
        raise NotImplementedError("Subclasses must implement validate")

    @staticmethod
    def is_blank(value: Any) -> bool:
        return value is None or (isinstance(value, str) and value.strip() == "")

    @staticmethod
    def validate_required_field(
        value: Any,
        field_name: str,
        result: ValidationResult,
        message: Optional[str] = None,
    ) -> bool:
        """Validate that a required field is present and not empty."""
        if BaseValidator.is_blank(value):
            result.add_error(message or f"{field_name} é obrigatório", field_name)
            return False
        return True

    @staticmethod
    def validate_date(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[date]:
        """Validate and convert date field (ISO ``YYYY-MM-DD``)."""
        if value is None or value == "":
            return None

        if isinstance(value, datetime):
            return value.date()

        if isinstance(value, date):
            return value

        if isinstance(value, str):
            try:
                return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
            except ValueError:
                result.add_error("Data inválida. Use formato YYYY-MM-DD", field_name)
                return None

        result.add_error("Formato de data inválido", field_name)
        return None

    @staticmethod
    def validate_decimal(
        value: Any,
        field_name: str,
        result: ValidationResult,
        positive: bool = False,
        max_value: Optional[Decimal] = None,
        positive_message: str = "Valor deve ser maior que zero",
        max_message: str = "Valor muito alto",
    ) -> Optional[Decimal]:
        """Validate and convert a money field to a two-place Decimal."""
        if value is None or value == "":
            return None

        if isinstance(value, bool):
            result.add_error("Valor inválido. Use formato numérico", field_name)
            return None

        if isinstance(value, str):
            value = value.strip().replace(" ", "")
            # Brazilian format (1.234,56 -> 1234.56)
            if "," in value and "." in value:
                value = value.replace(".", "").replace(",", ".")
            elif "," in value:
                value = value.replace(",", ".")

        try:
            decimal_value = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            result.add_error("Valor inválido. Use formato numérico", field_name)
            return None

        if not decimal_value.is_finite():
            result.add_error("Valor inválido. Use formato numérico", field_name)
            return None

        # Bounds apply to the stored two-place amount, so 0.004 counts as zero
        decimal_value = to_money(decimal_value)

        if positive and decimal_value <= 0:
            result.add_error(positive_message, field_name)
            return None

        if max_value is not None and decimal_value > max_value:
            result.add_error(max_message, field_name)
            return None

        return decimal_value

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        result: ValidationResult,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        min_message: Optional[str] = None,
        max_message: Optional[str] = None,
    ) -> Optional[int]:
        """Validate and convert integer field. Fractions and booleans fail."""
        if value is None or value == "":
            return None

        int_value: Optional[int] = None
        if isinstance(value, bool):
            int_value = None
        elif isinstance(value, int):
            int_value = value
        elif isinstance(value, float) and value.is_integer():
            int_value = int(value)
        elif isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
            int_value = int(value.strip())

        if int_value is None:
            result.add_error("Valor deve ser um número inteiro", field_name)
            return None

        if min_value is not None and int_value < min_value:
            result.add_error(
                min_message or f"Valor deve ser maior ou igual a {min_value}",
                field_name,
            )
            return None

        if max_value is not None and int_value > max_value:
            result.add_error(
                max_message or f"Valor deve ser menor ou igual a {max_value}",
                field_name,
            )
            return None

        return int_value

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        result: ValidationResult,
        max_length: Optional[int] = None,
        max_message: Optional[str] = None,
        strip: bool = True,
    ) -> Optional[str]:
        """Validate string field."""
        if value is None:
            return None

        if not isinstance(value, str):
            result.add_error("Valor deve ser um texto", field_name)
            return None

        if strip:
            value = value.strip()

        if max_length is not None and len(value) > max_length:
            result.add_error(
                max_message or f"Deve ter no máximo {max_length} caracteres",
                field_name,
            )
            return None

        return value

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        result: ValidationResult,
        enum_cls,
        message: Optional[str] = None,
    ):
        """Validate that ``value`` is a member of ``enum_cls``."""
        if value is None or value == "":
            return None
        try:
            return enum_cls(value)
        except ValueError:
            allowed = [member.value for member in enum_cls]
            result.add_error(
                message or f"Valor deve ser um dos: {', '.join(allowed)}",
                field_name,
            )
            return None

    @staticmethod
    def validate_boolean(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[bool]:
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        result.add_error("Valor deve ser verdadeiro ou falso", field_name)
        return None

    @staticmethod
    def validate_email(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[str]:
        if BaseValidator.is_blank(value):
            return None
        if not isinstance(value, str) or not _EMAIL_RE.match(value.strip()):
            result.add_error("Email inválido", field_name)
            return None
        return value.strip().lower()


class PatientValidator(BaseValidator):
    """Validator for patient registration and profile updates.

    With ``partial=True`` only the keys present in the payload are checked,
    ``None`` clears optional fields and ``credits`` is refused.
    """

    # field -> (max length, message)
    TEXT_FIELDS = {
        "rg": (20, "RG muito longo"),
        "legal_guardian": (255, "Nome do responsável muito longo"),
        "legal_guardian_cpf": (14, "CPF do responsável muito longo"),
        "phone2": (20, "Telefone muito longo"),
        "therapy_history_details": (1000, "Detalhes muito longos"),
        "therapy_reason": (1000, "Motivo muito longo"),
        "medication_since": (100, "Texto muito longo"),
        "medication_names": (500, "Lista de medicamentos muito longa"),
        "hospitalization_date": (100, "Data muito longa"),
        "hospitalization_reason": (500, "Razão muito longa"),
    }
    BOOLEAN_FIELDS = ("has_therapy_history", "takes_medication", "has_hospitalization")

    def __init__(self, partial: bool = False):
        self.partial = partial

    def _wants(self, data: Dict[str, Any], field: str) -> bool:
        return not self.partial or field in data

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        cleaned = result.cleaned_data

        if self._wants(data, "name"):
            if self.validate_required_field(
                data.get("name"), "name", result, "Nome é obrigatório"
            ):
                name = self.validate_string(
                    data.get("name"), "name", result, 100, "Nome muito longo"
                )
                if name is not None and len(name) < 2:
                    result.add_error("Nome deve ter pelo menos 2 caracteres", "name")
                elif name is not None:
                    cleaned["name"] = " ".join(name.split())

        if self._wants(data, "birth_date"):
            if self.validate_required_field(
                data.get("birth_date"),
                "birth_date",
                result,
                "Data de nascimento é obrigatória",
            ):
                birth_date = self.validate_date(
                    data.get("birth_date"), "birth_date", result
                )
                if birth_date is not None:
                    today = local_today()
                    if birth_date > today or birth_date.year < today.year - 120:
                        result.add_error("Data inválida", "birth_date")
                    else:
                        cleaned["birth_date"] = birth_date

        if self._wants(data, "gender"):
            if self.validate_required_field(
                data.get("gender"), "gender", result, "Gênero é obrigatório"
            ):
                gender = self.validate_choice(
                    data.get("gender"), "gender", result, Gender, "Gênero inválido"
                )
                if gender is not None:
                    cleaned["gender"] = gender

        if self._wants(data, "religion"):
            if self.validate_required_field(
                data.get("religion"), "religion", result, "Religião é obrigatória"
            ):
                religion = self.validate_choice(
                    data.get("religion"),
                    "religion",
                    result,
                    Religion,
                    "Religião inválida",
                )
                if religion is not None:
                    cleaned["religion"] = religion

        for field, message in (
            ("phone1", "Telefone é obrigatório"),
            ("cpf", "CPF é obrigatório"),
        ):
            if self._wants(data, field) and self.validate_required_field(
                data.get(field), field, result, message
            ):
                max_length = 20 if field == "phone1" else 14
                too_long = "Telefone muito longo" if field == "phone1" else "CPF muito longo"
                value = self.validate_string(
                    data.get(field), field, result, max_length, too_long
                )
                if value is not None:
                    cleaned[field] = value

        for field, (max_length, message) in self.TEXT_FIELDS.items():
            if field in data:
                value = self.validate_string(
                    data.get(field), field, result, max_length, message
                )
                if field not in result.errors:
                    cleaned[field] = value or None

        for field in ("email", "legal_guardian_email"):
            if field in data:
                value = self.validate_email(data.get(field), field, result)
                if field not in result.errors:
                    cleaned[field] = value

        if "profile_photo" in data:
            photo = data.get("profile_photo")
            if self.is_blank(photo):
                cleaned["profile_photo"] = None
            elif not isinstance(photo, str) or not photo.strip().startswith(
                _PHOTO_PREFIXES
            ):
                result.add_error("URL da foto inválida", "profile_photo")
            else:
                cleaned["profile_photo"] = photo.strip()

        for field in self.BOOLEAN_FIELDS:
            if field in data:
                value = self.validate_boolean(data.get(field), field, result)
                if value is not None:
                    cleaned[field] = value
            elif not self.partial:
                cleaned[field] = False

        if "consultation_price" in data:
            price = self.validate_decimal(
                data.get("consultation_price"),
                "consultation_price",
                result,
                positive=True,
                max_value=MAX_PRICE,
            )
            if "consultation_price" not in result.errors:
                cleaned["consultation_price"] = price

        if "consultation_frequency" in data:
            frequency = self.validate_choice(
                data.get("consultation_frequency"),
                "consultation_frequency",
                result,
                ConsultationFrequency,
            )
            if "consultation_frequency" not in result.errors:
                cleaned["consultation_frequency"] = frequency

        if "consultation_day" in data:
            day = self.validate_choice(
                data.get("consultation_day"), "consultation_day", result, DayOfWeek
            )
            if "consultation_day" not in result.errors:
                cleaned["consultation_day"] = day

        if "credits" in data:
            if self.partial:
                result.add_error(
                    "Créditos só podem ser alterados pela venda de créditos",
                    "credits",
                )
            else:
                credits = self.validate_integer(
                    data.get("credits"),
                    "credits",
                    result,
                    min_value=0,
                    min_message="Valor não pode ser negativo",
                )
                if credits is not None:
                    cleaned["credits"] = credits
        elif not self.partial:
            cleaned["credits"] = 0

        guardian = data.get("legal_guardian")
        if not self.is_blank(guardian) and self.is_blank(
            data.get("legal_guardian_email")
        ):
            result.add_error(
                "Email do responsável é obrigatório quando responsável é informado",
                "legal_guardian_email",
            )

        return result


class ConsultationCreateValidator(BaseValidator):
    """Validator for opening a consultation."""

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        if self.validate_required_field(
            data.get("patient_id"),
            "patient_id",
            result,
            "ID do paciente é obrigatório",
        ):
            patient_id = self.validate_string(
                data.get("patient_id"), "patient_id", result
            )
            if patient_id:
                result.cleaned_data["patient_id"] = patient_id

        price = self.validate_decimal(
            data.get("price"),
            "price",
            result,
            positive=True,
            max_value=MAX_PRICE,
            positive_message="Preço deve ser positivo",
            max_message="Preço muito alto",
        )
        result.cleaned_data["price"] = price

        return result


class ConsultationUpdateValidator(BaseValidator):
    """Validator for consultation patches.

    Only the free-text fields may be patched. Status and payment change via
    finalize/pay; price and start time never change.
    """

    EDITABLE_FIELDS = {
        "content": "Conteúdo muito longo",
        "notes": "Notas muito longas",
    }
    IGNORED_FIELDS = ("id",)

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        patch = {
            key: value
            for key, value in data.items()
            if key not in self.IGNORED_FIELDS and value is not None
        }

        for key in patch:
            if key not in self.EDITABLE_FIELDS:
                result.add_error("Campo não pode ser alterado", key)

        for field, message in self.EDITABLE_FIELDS.items():
            if field in patch:
                value = self.validate_string(
                    patch[field],
                    field,
                    result,
                    MAX_CONSULTATION_TEXT_LENGTH,
                    message,
                    strip=False,
                )
                if value is not None:
                    result.cleaned_data[field] = value

        if not patch:
            result.add_error("Nenhum campo informado para atualização")

        return result


class CreditSaleValidator(BaseValidator):
    """Validator for selling prepaid consultation credits."""

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        if self.validate_required_field(
            data.get("quantity"), "quantity", result, "Quantidade é obrigatória"
        ):
            quantity = self.validate_integer(
                data.get("quantity"),
                "quantity",
                result,
                min_value=1,
                max_value=MAX_CREDITS_PER_SALE,
                min_message="Quantidade deve ser pelo menos 1",
                max_message="Quantidade muito alta",
            )
            if quantity is not None:
                result.cleaned_data["quantity"] = quantity

        if self.validate_required_field(
            data.get("unit_price"),
            "unit_price",
            result,
            "Preço unitário é obrigatório",
        ):
            unit_price = self.validate_decimal(
                data.get("unit_price"),
                "unit_price",
                result,
                positive=True,
                max_value=MAX_PRICE,
                positive_message="Preço unitário deve ser positivo",
                max_message="Preço unitário muito alto",
            )
            if unit_price is not None:
                result.cleaned_data["unit_price"] = unit_price

        return result


_VALIDATORS = {
    "patient": lambda: PatientValidator(),
    "patient_update": lambda: PatientValidator(partial=True),
    "consultation": ConsultationCreateValidator,
    "consultation_update": ConsultationUpdateValidator,
    "credit_sale": CreditSaleValidator,
}


def get_validator(entity_type: str) -> BaseValidator:
    """Factory function to get appropriate validator."""
    try:
        return _VALIDATORS[entity_type]()
    except KeyError:
        raise ValueError(f"Unknown entity type: {entity_type}") from None


def validate_payload(entity_type: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate ``data`` and return the cleaned values or raise."""
    if data is None or not isinstance(data, dict):
        raise ValidationError("Corpo da requisição inválido")
    result = get_validator(entity_type).validate(data)
    result.raise_if_invalid()
    return result.cleaned_data


def allowed_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]
