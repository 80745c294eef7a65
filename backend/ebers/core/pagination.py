"""
Listing, pagination and sort engine.

Patient listing, consultation listing and the financial overview all accept
the same query shape (page, limit, sort field, sort order, optional name
search plus resource-specific filters). ``build_list_query`` validates raw
values against a ``ResourceListing`` description and never clamps: a bad
value raises ``ValidationError`` naming the parameter and its legal values.
``Page`` is the response envelope.
"""

import math
import re
from dataclasses import dataclass, field
from typing import (Any, Callable, Dict, Generic, List, Mapping, Optional,
                    Tuple, TypeVar)

from ebers.core.config import DEFAULT_PAGE, DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from ebers.core.exceptions import ValidationError
from ebers.core.validation import format_choices
from ebers.domain.entities import ConsultationStatus

T = TypeVar("T")
U = TypeVar("U")

SORT_ORDERS = ("asc", "desc")


def parse_status(value: Any) -> ConsultationStatus:
    try:
        return ConsultationStatus(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Status deve ser {format_choices(s.value for s in ConsultationStatus)}",
            field="status",
        ) from None


def parse_paid(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValidationError('Pago deve ser "true" ou "false"', field="paid")


def parse_patient_id(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("ID do paciente é obrigatório", field="patient_id")
    return value.strip()


@dataclass(frozen=True)
class ResourceListing:
    """Allow-lists and defaults for one listable resource."""

    name: str
    sort_fields: Tuple[str, ...]
    default_sort_by: str
    default_sort_order: str
    filters: Mapping[str, Callable[[Any], Any]] = field(default_factory=dict)


PATIENT_LISTING = ResourceListing(
    name="patients",
    sort_fields=("name", "age", "createdAt"),
    default_sort_by="name",
    default_sort_order="asc",
)

CONSULTATION_LISTING = ResourceListing(
    name="consultations",
    sort_fields=("startedAt", "status", "paid"),
    default_sort_by="startedAt",
    default_sort_order="desc",
    filters={
        "patient_id": parse_patient_id,
        "status": parse_status,
        "paid": parse_paid,
    },
)

FINANCIAL_LISTING = ResourceListing(
    name="financial",
    sort_fields=("name", "paymentDeficit"),
    default_sort_by="paymentDeficit",
    default_sort_order="desc",
)


@dataclass(frozen=True)
class ListQuery:
    """Validated listing parameters."""

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_PAGE_LIMIT
    sort_by: str = ""
    sort_order: str = "asc"
    search: Optional[str] = None
    filters: Mapping[str, Any] = field(default_factory=dict)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"


@dataclass
class Page(Generic[T]):
    """Paginated response envelope."""

    items: List[T]
    total_count: int
    current_page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1

    @classmethod
    def build(cls, items: List[T], total_count: int, query: ListQuery) -> "Page[T]":
        return cls(
            items=list(items),
            total_count=total_count,
            current_page=query.page,
            limit=query.limit,
        )

    def map(self, func: Callable[[T], U]) -> "Page[U]":
        return Page(
            items=[func(item) for item in self.items],
            total_count=self.total_count,
            current_page=self.current_page,
            limit=self.limit,
        )

    def to_dict(self, serialize: Callable[[T], Any]) -> Dict[str, Any]:
        return {
            "items": [serialize(item) for item in self.items],
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "current_page": self.current_page,
            "has_next_page": self.has_next_page,
            "has_previous_page": self.has_previous_page,
        }


def parse_int_param(value: Any) -> Optional[int]:
    """Integer query value, or None when it is not a plain base-10 integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"-?[0-9]+", value.strip()):
        return int(value.strip())
    return None


def _present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and value.strip() == "")


def build_list_query(
    listing: ResourceListing,
    params: Optional[Mapping[str, Any]] = None,
    **overrides: Any,
) -> ListQuery:
    """
    Validate raw listing parameters for ``listing``.

    Args:
        listing: resource description (allowed sort fields, defaults, filters)
        params: raw values, e.g. ``request.args``; unknown keys are ignored
        **overrides: values that take precedence over ``params``

    Raises:
        ValidationError: for invalid page, limit, sort_by, sort_order or filter
    """
    raw: Dict[str, Any] = dict(params or {})
    raw.update({key: value for key, value in overrides.items() if value is not None})

    page = DEFAULT_PAGE
    if _present(raw.get("page")):
        page = parse_int_param(raw["page"])
        if page is None or page < 1:
            raise ValidationError("Página deve ser maior que 0", field="page")

    limit = DEFAULT_PAGE_LIMIT
    if _present(raw.get("limit")):
        limit = parse_int_param(raw["limit"])
        if limit is None or not 1 <= limit <= MAX_PAGE_LIMIT:
            raise ValidationError(
                f"Limite deve estar entre 1 e {MAX_PAGE_LIMIT}", field="limit"
            )

    sort_by = listing.default_sort_by
    if _present(raw.get("sort_by")):
        sort_by = str(raw["sort_by"]).strip()
        if sort_by not in listing.sort_fields:
            raise ValidationError(
                f"Campo de ordenação deve ser {format_choices(listing.sort_fields)}",
                field="sort_by",
            )

    sort_order = listing.default_sort_order
    if _present(raw.get("sort_order")):
        sort_order = str(raw["sort_order"]).strip().lower()
        if sort_order not in SORT_ORDERS:
            raise ValidationError(
                f"Ordem deve ser {format_choices(SORT_ORDERS)}", field="sort_order"
            )

    search = raw.get("search")
    search = search.strip() if isinstance(search, str) and search.strip() else None

    filters = {
        name: parser(raw[name])
        for name, parser in listing.filters.items()
        if _present(raw.get(name))
    }

    return ListQuery(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        filters=filters,
    )


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
