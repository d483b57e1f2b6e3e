"""Records used by the work order tax pipeline."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Dict, Mapping, Optional

CURRENCY_PLACES = Decimal("0.01")

METHOD_SEPARATE = "separate"
METHOD_COMBINED = "combined"
CALCULATION_METHODS = (METHOD_SEPARATE, METHOD_COMBINED)

DISPLAY_INCLUSIVE = "inclusive"
DISPLAY_EXCLUSIVE = "exclusive"
DISPLAY_METHODS = (DISPLAY_INCLUSIVE, DISPLAY_EXCLUSIVE)

DEFAULT_TAX_DESCRIPTION = "Sales Tax"


def coerce_amount(value: Any) -> float:
    """Return a non-negative finite float, or 0.0 for anything malformed."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def _to_cents(value: Decimal) -> float:
    """Quantize half-up to cents; non-finite or unrepresentable values become 0.0."""
    if not value.is_finite():
        return 0.0
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 4)
        cents = float(value.quantize(CURRENCY_PLACES, rounding=ROUND_HALF_UP))
    return cents if math.isfinite(cents) else 0.0


def round_currency(value: Any) -> float:
    """Round half-up to cents."""
    if isinstance(value, float) and not math.isfinite(value):
        return 0.0
    return _to_cents(Decimal(str(value)))


def tax_on(amount: Any, rate: Any) -> float:
    """
    Tax on an amount at a percentage rate, rounded half-up to cents.

    The product is taken in Decimal so an exact half cent (8.20 at 7.5% is
    0.615) rounds up.
    """
    with localcontext() as ctx:
        ctx.prec = 80
        product = Decimal(str(amount)) * Decimal(str(rate)) / 100
    return _to_cents(product)


def coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _optional_amount(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return coerce_amount(value)


@dataclass(frozen=True)
class TaxSettings:
    """Shop-scoped tax configuration. Rates are percentages (8.25 means 8.25%)."""

    shop_id: str
    labor_tax_rate: float = 0.0
    parts_tax_rate: float = 0.0
    combined_tax_rate: float = 0.0
    tax_calculation_method: str = METHOD_SEPARATE
    tax_display_method: str = DISPLAY_EXCLUSIVE
    apply_tax_to_labor: bool = True
    apply_tax_to_parts: bool = True
    tax_description: str = DEFAULT_TAX_DESCRIPTION
    tax_exempt_customer_ids: tuple = ()

    @classmethod
    def default(cls, shop_id: str) -> "TaxSettings":
        return cls(shop_id=shop_id)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "TaxSettings":
        """Build settings from a stored record, tolerating missing or bad fields."""
        method = doc.get("tax_calculation_method")
        if method not in CALCULATION_METHODS:
            method = METHOD_SEPARATE
        display = doc.get("tax_display_method")
        if display not in DISPLAY_METHODS:
            display = DISPLAY_EXCLUSIVE
        exempt_ids = doc.get("tax_exempt_customer_ids") or ()
        if isinstance(exempt_ids, str):
            exempt_ids = (exempt_ids,)
        return cls(
            shop_id=str(doc.get("shop_id", "")),
            labor_tax_rate=coerce_amount(doc.get("labor_tax_rate")),
            parts_tax_rate=coerce_amount(doc.get("parts_tax_rate")),
            combined_tax_rate=coerce_amount(doc.get("combined_tax_rate")),
            tax_calculation_method=method,
            tax_display_method=display,
            apply_tax_to_labor=coerce_bool(doc.get("apply_tax_to_labor"), True),
            apply_tax_to_parts=coerce_bool(doc.get("apply_tax_to_parts"), True),
            tax_description=doc.get("tax_description") or DEFAULT_TAX_DESCRIPTION,
            tax_exempt_customer_ids=tuple(str(cid) for cid in exempt_ids),
        )

    def to_document(self) -> Dict[str, Any]:
        doc = asdict(self)
        doc["tax_exempt_customer_ids"] = list(self.tax_exempt_customer_ids)
        return doc

    def is_customer_exempt(self, customer_id: Optional[str]) -> bool:
        return customer_id is not None and str(customer_id) in self.tax_exempt_customer_ids


@dataclass
class JobLine:
    """A labor line on a work order."""

    id: Optional[str] = None
    name: str = ""
    category: Optional[str] = None
    estimated_hours: Optional[float] = None
    labor_rate: Optional[float] = None
    total_amount: Optional[float] = None

    def line_total(self) -> float:
        if self.total_amount is not None:
            return coerce_amount(self.total_amount)
        return coerce_amount(coerce_amount(self.estimated_hours) * coerce_amount(self.labor_rate))


@dataclass
class Part:
    """A parts/materials line, owned by a work order or one of its job lines."""

    id: Optional[str] = None
    name: str = ""
    part_number: Optional[str] = None
    job_line_id: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None

    def line_total(self) -> float:
        if self.total_price is not None:
            return coerce_amount(self.total_price)
        return coerce_amount(coerce_amount(self.quantity) * coerce_amount(self.unit_price))


@dataclass
class Customer:
    id: Optional[str] = None
    name: str = ""
    labor_tax_exempt: bool = False
    parts_tax_exempt: bool = False
    tax_exempt_id: Optional[str] = None


@dataclass
class TaxBreakdown:
    """Rates and exemption status used for one calculation."""

    labor_tax_rate: float = 0.0
    parts_tax_rate: float = 0.0
    combined_tax_rate: Optional[float] = None
    calculation_method: str = METHOD_SEPARATE
    display_method: str = DISPLAY_EXCLUSIVE
    tax_description: str = DEFAULT_TAX_DESCRIPTION
    is_exempt: bool = False
    labor_exempt: bool = False
    parts_exempt: bool = False
    exemption_certificate: Optional[str] = None


@dataclass
class TaxCalculationResult:
    labor_amount: float = 0.0
    parts_amount: float = 0.0
    subtotal: float = 0.0
    labor_tax: float = 0.0
    parts_tax: float = 0.0
    total_tax: float = 0.0
    labor_total: float = 0.0
    parts_total: float = 0.0
    grand_total: float = 0.0
    breakdown: TaxBreakdown = field(default_factory=TaxBreakdown)
    is_loading: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def job_line_from_record(record: Mapping[str, Any]) -> JobLine:
    return JobLine(
        id=record.get("id"),
        name=record.get("name") or "",
        category=record.get("category"),
        estimated_hours=_optional_amount(record.get("estimated_hours")),
        labor_rate=_optional_amount(record.get("labor_rate")),
        total_amount=_optional_amount(record.get("total_amount")),
    )


def part_from_record(record: Mapping[str, Any]) -> Part:
    return Part(
        id=record.get("id"),
        name=record.get("name") or "",
        part_number=record.get("part_number"),
        job_line_id=record.get("job_line_id"),
        quantity=_optional_amount(record.get("quantity")),
        unit_price=_optional_amount(record.get("unit_price")),
        total_price=_optional_amount(record.get("total_price")),
    )


def customer_from_record(record: Mapping[str, Any]) -> Customer:
    return Customer(
        id=record.get("id"),
        name=record.get("name") or "",
        labor_tax_exempt=coerce_bool(record.get("labor_tax_exempt"), False),
        parts_tax_exempt=coerce_bool(record.get("parts_tax_exempt"), False),
        tax_exempt_id=record.get("tax_exempt_id"),
    )


# Fields of TaxSettings that may be changed through an update.
UPDATABLE_FIELDS = (
    "labor_tax_rate",
    "parts_tax_rate",
    "combined_tax_rate",
    "tax_calculation_method",
    "tax_display_method",
    "apply_tax_to_labor",
    "apply_tax_to_parts",
    "tax_description",
    "tax_exempt_customer_ids",
)
