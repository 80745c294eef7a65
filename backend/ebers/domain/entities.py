"""
Domain entities - Pure business logic, no framework dependencies.

These dataclasses are what repositories return and services operate on.
They are independent of:
- Database implementation (SQLAlchemy)
- HTTP frameworks (Flask)
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from ebers.core.config import PRICE_EPSILON
from ebers.utils.date_utils import calculate_age


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    NON_BINARY = "NON_BINARY"


class Religion(str, Enum):
    ATHEIST = "ATHEIST"
    BUDDHISM = "BUDDHISM"
    CANDOMBLE = "CANDOMBLE"
    CATHOLIC = "CATHOLIC"
    SPIRITIST = "SPIRITIST"
    SPIRITUALIST = "SPIRITUALIST"
    EVANGELICAL = "EVANGELICAL"
    HINDUISM = "HINDUISM"
    ISLAM = "ISLAM"
    JUDAISM = "JUDAISM"
    MORMON = "MORMON"
    NO_RELIGION = "NO_RELIGION"
    JEHOVAH_WITNESS = "JEHOVAH_WITNESS"
    UMBANDA = "UMBANDA"


class ConsultationFrequency(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    SPORADIC = "SPORADIC"


class DayOfWeek(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class ConsultationStatus(str, Enum):
    """Lifecycle of a consultation: OPEN --finalize--> FINALIZED."""

    OPEN = "OPEN"
    FINALIZED = "FINALIZED"


@dataclass
class PatientProjection:
    """Minimal patient data embedded in consultation results."""

    id: str
    name: str
    profile_photo: Optional[str] = None
    birth_date: Optional[date] = None

    @property
    def age(self) -> int:
        return calculate_age(self.birth_date)


@dataclass
class Patient:
    """Domain entity representing a patient of the clinic.

    ``credits`` is the balance of prepaid sessions. Only the credit ledger
    changes it after creation.
    """

    name: str = ""
    birth_date: Optional[date] = None
    id: Optional[str] = None
    profile_photo: Optional[str] = None
    gender: Optional[Gender] = None
    cpf: Optional[str] = None
    rg: Optional[str] = None
    religion: Optional[Religion] = None
    legal_guardian: Optional[str] = None
    legal_guardian_email: Optional[str] = None
    legal_guardian_cpf: Optional[str] = None
    phone1: Optional[str] = None
    phone2: Optional[str] = None
    email: Optional[str] = None
    has_therapy_history: bool = False
    therapy_history_details: Optional[str] = None
    therapy_reason: Optional[str] = None
    takes_medication: bool = False
    medication_since: Optional[str] = None
    medication_names: Optional[str] = None
    has_hospitalization: bool = False
    hospitalization_date: Optional[str] = None
    hospitalization_reason: Optional[str] = None
    consultation_price: Optional[Decimal] = None
    consultation_frequency: Optional[ConsultationFrequency] = None
    consultation_day: Optional[DayOfWeek] = None
    credits: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate business rules."""
        if not self.name or not self.name.strip():
            raise ValueError("Nome é obrigatório")
        if self.credits < 0:
            raise ValueError("Créditos não podem ser negativos")
        if self.consultation_price is not None and self.consultation_price <= 0:
            raise ValueError("Valor da consulta deve ser maior que zero")

    @property
    def age(self) -> int:
        return calculate_age(self.birth_date)

    @property
    def has_price(self) -> bool:
        return self.consultation_price is not None and self.consultation_price > 0

    def price_matches(self, unit_price: Decimal) -> bool:
        """True when ``unit_price`` equals the consultation price within 0.01."""
        if not self.has_price:
            return False
        return abs(unit_price - self.consultation_price) < PRICE_EPSILON

    def to_projection(self) -> PatientProjection:
        return PatientProjection(
            id=self.id,
            name=self.name,
            profile_photo=self.profile_photo,
            birth_date=self.birth_date,
        )


@dataclass
class Consultation:
    """Domain entity for a clinical session.

    Status and payment are independent axes: FINALIZED+unpaid and OPEN+paid
    are both legal.
    """

    patient_id: str = ""
    price: Decimal = Decimal("0.00")
    status: ConsultationStatus = ConsultationStatus.OPEN
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    paid: bool = False
    paid_at: Optional[datetime] = None
    content: str = ""
    notes: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    patient: Optional[PatientProjection] = field(default=None, compare=False)

    def __post_init__(self):
        """Validate business rules."""
        if not self.patient_id:
            raise ValueError("Paciente é obrigatório")
        if self.price <= 0:
            raise ValueError("Preço deve ser positivo")
        if (self.finished_at is not None) != (
            self.status == ConsultationStatus.FINALIZED
        ):
            raise ValueError(
                "Data de finalização deve existir somente em consultas finalizadas"
            )
        if (self.paid_at is not None) != self.paid:
            raise ValueError(
                "Data de pagamento deve existir somente em consultas pagas"
            )

    @property
    def is_open(self) -> bool:
        return self.status == ConsultationStatus.OPEN

    @property
    def is_finalized(self) -> bool:
        return self.status == ConsultationStatus.FINALIZED


@dataclass
class PatientListItem:
    """Patient row for listings, flagged when a consultation is in progress."""

    patient: Patient
    has_active_consultation: bool = False


@dataclass
class PatientFinancialSummary:
    """Derived financial metrics for one patient."""

    id: str
    name: str
    profile_photo: Optional[str]
    birth_date: Optional[date]
    age: int
    total_consultations: int
    paid_consultations: int
    available_credits: int
    consultation_price: Optional[Decimal]

    def __post_init__(self):
        if self.paid_consultations < 0 or self.total_consultations < 0:
            raise ValueError("Contagens não podem ser negativas")
        if self.paid_consultations > self.total_consultations:
            raise ValueError("Consultas pagas excedem o total de consultas")

    @property
    def payment_deficit(self) -> int:
        return self.total_consultations - self.paid_consultations

    @property
    def has_payment_issues(self) -> bool:
        return self.payment_deficit > 0

    @classmethod
    def from_counts(
        cls, patient: Patient, total: int, paid: int
    ) -> "PatientFinancialSummary":
        return cls(
            id=patient.id,
            name=patient.name,
            profile_photo=patient.profile_photo,
            birth_date=patient.birth_date,
            age=patient.age,
            total_consultations=total,
            paid_consultations=paid,
            available_credits=patient.credits,
            consultation_price=patient.consultation_price,
        )


@dataclass
class CreditSaleResult:
    patient_id: str
    patient_name: str
    credits_sold: int
    unit_price: Decimal
    total_cost: Decimal
    new_balance: int

    @property
    def message(self) -> str:
        return f"{self.credits_sold} crédito(s) vendido(s) com sucesso"


@dataclass
class ConsultationStats:
    total: int = 0
    open: int = 0
    finalized: int = 0
    paid: int = 0
    unpaid: int = 0


@dataclass
class PatientStats:
    total: int = 0
    with_credits: int = 0
    with_active_consultations: int = 0


@dataclass
class FinancialStats:
    total_patients: int = 0
    patients_with_payment_issues: int = 0
    total_unpaid_consultations: int = 0
    total_credits_in_system: int = 0
