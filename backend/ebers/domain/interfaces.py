"""
Abstract interfaces for repositories following Interface Segregation Principle.

These interfaces define the storage capabilities the services rely on
(get/list/create/update/count plus a transaction primitive) without
implementation details, enabling dependency injection and easier testing.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ebers.core.pagination import ListQuery, Page

from .entities import Consultation, Patient


class ITransactionManager(ABC):
    """Atomic execution of several writes."""

    @abstractmethod
    def transaction(self, error_context: str) -> AbstractContextManager:
        """Context manager: commit on success, roll back on any error.

        Store failures are re-raised as ``PersistenceError`` prefixed with
        ``error_context``; application errors propagate unchanged.
        """
        pass


class IPatientReader(ABC):
    """Interface for patient read operations."""

    @abstractmethod
    def get_by_id(self, patient_id: str) -> Optional[Patient]:
        """Get patient by ID."""
        pass

    @abstractmethod
    def list(self, query: ListQuery) -> Page[Patient]:
        """Filtered, sorted and paginated patients."""
        pass

    @abstractmethod
    def list_all(self, search: Optional[str] = None) -> List[Patient]:
        """Every patient, optionally filtered by name substring."""
        pass

    @abstractmethod
    def search_by_name(self, term: str, limit: int) -> List[Patient]:
        """Patients whose name contains ``term``, ordered by name."""
        pass

    @abstractmethod
    def count(self, with_credits: bool = False) -> int:
        pass

    @abstractmethod
    def total_credits(self) -> int:
        """Sum of every patient's credit balance."""
        pass


class IPatientWriter(ABC):
    """Interface for patient write operations."""

    @abstractmethod
    def create(self, patient: Patient) -> Patient:
        pass

    @abstractmethod
    def update(self, patient_id: str, values: Dict[str, Any]) -> Optional[Patient]:
        """Apply ``values``; ``None`` when the patient does not exist."""
        pass

    @abstractmethod
    def delete(self, patient_id: str) -> bool:
        pass

    @abstractmethod
    def add_credits(self, patient_id: str, quantity: int) -> Optional[int]:
        """Atomically add credits and return the new balance."""
        pass

    @abstractmethod
    def consume_credit(self, patient_id: str) -> bool:
        """Atomically remove one credit when the balance is positive.

        Returns False when nothing was debited.
        """
        pass


class IPatientRepository(IPatientReader, IPatientWriter):
    """Complete patient repository interface."""

    pass


class IConsultationReader(ABC):
    """Interface for consultation read operations."""

    @abstractmethod
    def get_by_id(self, consultation_id: str) -> Optional[Consultation]:
        """Get consultation by ID, with its patient projection."""
        pass

    @abstractmethod
    def get_open_for_patient(self, patient_id: str) -> Optional[Consultation]:
        pass

    @abstractmethod
    def list(self, query: ListQuery) -> Page[Consultation]:
        pass

    @abstractmethod
    def recent(self, limit: int) -> List[Consultation]:
        pass

    @abstractmethod
    def count(
        self,
        status: Optional[str] = None,
        paid: Optional[bool] = None,
        patient_id: Optional[str] = None,
    ) -> int:
        pass

    @abstractmethod
    def count_by_patient(
        self, patient_ids: Optional[Iterable[str]] = None
    ) -> Dict[str, Tuple[int, int]]:
        """Map patient id -> (total consultations, paid consultations)."""
        pass

    @abstractmethod
    def patients_with_open_consultation(
        self, patient_ids: Optional[Iterable[str]] = None
    ) -> Set[str]:
        pass

    @abstractmethod
    def paid_revenue(self) -> Decimal:
        """Sum of the prices of paid consultations."""
        pass


class IConsultationWriter(ABC):
    """Interface for consultation write operations."""

    @abstractmethod
    def create(self, consultation: Consultation) -> Consultation:
        """Insert a consultation.

        Raises ``OpenConsultationExistsError`` when the store refuses a
        second OPEN consultation for the same patient.
        """
        pass

    @abstractmethod
    def finalize(self, consultation_id: str, finished_at: datetime) -> bool:
        """Mark an OPEN consultation FINALIZED; False if it was not OPEN."""
        pass

    @abstractmethod
    def mark_paid(self, consultation_id: str, paid_at: datetime) -> bool:
        """Mark an unpaid consultation paid; False if it was already paid."""
        pass

    @abstractmethod
    def update_text(self, consultation_id: str, values: Dict[str, str]) -> bool:
        pass

    @abstractmethod
    def delete(self, consultation_id: str) -> bool:
        pass


class IConsultationRepository(IConsultationReader, IConsultationWriter):
    """Complete consultation repository interface."""

    pass
