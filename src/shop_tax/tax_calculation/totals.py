"""Derived totals for a work order: subtotals, tax and the invoice summary."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from ..utils.logging import get_logger
from .calculator import calculate_tax
from .models import (
    Customer,
    JobLine,
    Part,
    TaxCalculationResult,
    TaxSettings,
    coerce_amount,
    customer_from_record,
    job_line_from_record,
    part_from_record,
    round_currency,
)

logger = get_logger(__name__)

JobLineLike = Union[JobLine, Mapping[str, Any]]
PartLike = Union[Part, Mapping[str, Any]]
CustomerLike = Union[Customer, Mapping[str, Any]]


def _job_line_totals(job_lines: Optional[Iterable[Any]]) -> Tuple[float, ...]:
    """Line totals; entries that are neither a JobLine nor a mapping are skipped."""
    totals = []
    for line in job_lines or ():
        if isinstance(line, JobLine):
            totals.append(line.line_total())
        elif isinstance(line, Mapping):
            totals.append(job_line_from_record(line).line_total())
    return tuple(totals)


def _part_totals(parts: Optional[Iterable[Any]]) -> Tuple[float, ...]:
    """Line totals; entries that are neither a Part nor a mapping are skipped."""
    totals = []
    for part in parts or ():
        if isinstance(part, Part):
            totals.append(part.line_total())
        elif isinstance(part, Mapping):
            totals.append(part_from_record(part).line_total())
    return tuple(totals)


def _sum_amounts(amounts: Iterable[float]) -> float:
    return round_currency(sum((Decimal(str(a)) for a in amounts), Decimal(0)))


def _as_customer(customer: Optional[CustomerLike]) -> Optional[Customer]:
    if customer is None or isinstance(customer, Customer):
        return customer
    if not isinstance(customer, Mapping):
        return None
    return customer_from_record(customer)


def labor_subtotal(job_lines: Optional[Iterable[JobLineLike]]) -> float:
    return _sum_amounts(_job_line_totals(job_lines))


def parts_subtotal(parts: Optional[Iterable[PartLike]]) -> float:
    return _sum_amounts(_part_totals(parts))


def resolve_exemption(
    customer: Optional[Customer], settings: Optional[TaxSettings]
) -> Tuple[bool, bool]:
    """Return (labor_exempt, parts_exempt) for a customer."""
    if customer is None:
        return False, False
    if settings is not None and settings.is_customer_exempt(customer.id):
        return True, True
    return bool(customer.labor_tax_exempt), bool(customer.parts_tax_exempt)


def derive_work_order_totals(
    job_lines: Optional[Iterable[JobLineLike]],
    parts: Optional[Iterable[PartLike]],
    customer: Optional[CustomerLike] = None,
    settings: Optional[TaxSettings] = None,
) -> TaxCalculationResult:
    """
    Sum the work order's lines and tax them with the shop's settings.

    Pure: no I/O, same inputs give the same result. ``settings=None`` means
    the settings are still loading.
    """
    customer = _as_customer(customer)
    labor_exempt, parts_exempt = resolve_exemption(customer, settings)
    return calculate_tax(
        labor_subtotal(job_lines),
        parts_subtotal(parts),
        settings,
        is_customer_tax_exempt=labor_exempt or parts_exempt,
        exemption_certificate=customer.tax_exempt_id if customer else None,
        labor_exempt=labor_exempt,
        parts_exempt=parts_exempt,
    )


class WorkOrderTaxCalculations:
    """
    Recomputes work order totals from the provider's current settings.

    The last result is kept and returned again while lines, parts, customer
    and settings are unchanged.
    """

    def __init__(self, provider) -> None:
        self.provider = provider
        self._last_key = None
        self._last_result: Optional[TaxCalculationResult] = None

    @staticmethod
    def _key(job_lines, parts, customer, settings) -> tuple:
        return (
            _job_line_totals(job_lines),
            _part_totals(parts),
            None if customer is None else (
                customer.id, customer.labor_tax_exempt,
                customer.parts_tax_exempt, customer.tax_exempt_id,
            ),
            settings,
        )

    def compute(
        self,
        job_lines: Optional[Iterable[JobLineLike]],
        parts: Optional[Iterable[PartLike]],
        customer: Optional[CustomerLike] = None,
    ) -> TaxCalculationResult:
        job_lines = list(job_lines or ())
        parts = list(parts or ())
        customer = _as_customer(customer)
        settings = self.provider.settings

        key = self._key(job_lines, parts, customer, settings)
        if key == self._last_key and self._last_result is not None:
            return self._last_result

        result = derive_work_order_totals(job_lines, parts, customer, settings)
        self._last_key = key
        self._last_result = result
        return result


@dataclass
class InvoiceSummary:
    """Printable bill lines built on top of the taxed totals."""

    labor_amount: float
    parts_amount: float
    shop_supplies: float
    hazardous_materials: float
    labor_discount: float
    parts_discount: float
    labor_tax: float
    parts_tax: float
    total_tax: float
    total_amount: float
    is_loading: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_invoice_summary(
    totals: TaxCalculationResult,
    shop_supplies: Any = 0.0,
    hazardous_materials: Any = 0.0,
    labor_discount: Any = 0.0,
    parts_discount: Any = 0.0,
) -> InvoiceSummary:
    """Add fees and subtract discounts; the total never goes below zero."""
    supplies = round_currency(coerce_amount(shop_supplies))
    hazmat = round_currency(coerce_amount(hazardous_materials))
    labor_disc = round_currency(coerce_amount(labor_discount))
    parts_disc = round_currency(coerce_amount(parts_discount))

    total = (
        totals.labor_amount + totals.parts_amount + supplies + hazmat
        + totals.labor_tax + totals.parts_tax - labor_disc - parts_disc
    )
    if total < 0:
        logger.warning(f"Discounts exceed the bill ({total:.2f}); invoice total set to 0.00")
        total = 0.0

    return InvoiceSummary(
        labor_amount=totals.labor_amount,
        parts_amount=totals.parts_amount,
        shop_supplies=supplies,
        hazardous_materials=hazmat,
        labor_discount=labor_disc,
        parts_discount=parts_disc,
        labor_tax=totals.labor_tax,
        parts_tax=totals.parts_tax,
        total_tax=totals.total_tax,
        total_amount=round_currency(total),
        is_loading=totals.is_loading,
    )
