"""Labor and parts tax calculation for a work order bill."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from ..utils.logging import get_logger
from .models import (
    DEFAULT_TAX_DESCRIPTION,
    METHOD_COMBINED,
    TaxBreakdown,
    TaxCalculationResult,
    TaxSettings,
    coerce_amount,
    round_currency,
    tax_on,
)

logger = get_logger(__name__)


def _sum_cents(*values: float) -> float:
    """Exact decimal sum of cent amounts, rounded to cents."""
    return round_currency(sum((Decimal(str(v)) for v in values), Decimal(0)))


def _format_rate(rate: float) -> str:
    return f"{rate:g}%"


def _describe(breakdown: TaxBreakdown, apply_labor: bool, apply_parts: bool) -> str:
    label = breakdown.tax_description or DEFAULT_TAX_DESCRIPTION
    if breakdown.is_exempt and breakdown.labor_exempt and breakdown.parts_exempt:
        if breakdown.exemption_certificate:
            return f"Tax exempt (certificate {breakdown.exemption_certificate})"
        return "Tax exempt"
    if breakdown.calculation_method == METHOD_COMBINED:
        return f"{label} ({_format_rate(breakdown.combined_tax_rate or 0.0)} combined)"

    parts = []
    if apply_labor:
        parts.append(f"Labor {_format_rate(breakdown.labor_tax_rate)}")
    if apply_parts:
        parts.append(f"Parts {_format_rate(breakdown.parts_tax_rate)}")
    if not parts:
        return f"{label} (not applied)"
    return f"{label} ({', '.join(parts)})"


def loading_result(labor_amount: Any, parts_amount: Any) -> TaxCalculationResult:
    """Result used while the shop's settings have not resolved: no tax at all."""
    labor = round_currency(coerce_amount(labor_amount))
    parts = round_currency(coerce_amount(parts_amount))
    subtotal = _sum_cents(labor, parts)
    return TaxCalculationResult(
        labor_amount=labor,
        parts_amount=parts,
        subtotal=subtotal,
        labor_total=labor,
        parts_total=parts,
        grand_total=subtotal,
        breakdown=TaxBreakdown(tax_description=f"{DEFAULT_TAX_DESCRIPTION} (not yet loaded)"),
        is_loading=True,
    )


def calculate_tax(
    labor_amount: Any,
    parts_amount: Any,
    settings: Optional[TaxSettings],
    is_customer_tax_exempt: bool = False,
    exemption_certificate: Optional[str] = None,
    labor_exempt: Optional[bool] = None,
    parts_exempt: Optional[bool] = None,
) -> TaxCalculationResult:
    """
    Compute labor tax, parts tax and the grand total.

    Amounts are coerced to non-negative numbers, so malformed input never
    raises. With ``settings=None`` the result carries ``is_loading=True`` and no
    tax.

    Exemption: when ``is_customer_tax_exempt`` is set, it applies to the axes
    flagged by ``labor_exempt`` / ``parts_exempt``. If neither axis is flagged,
    both axes are exempt.

    Args:
        labor_amount: Labor subtotal
        parts_amount: Parts subtotal
        settings: Shop tax settings, or None while loading
        is_customer_tax_exempt: Whether the customer holds any exemption
        exemption_certificate: Certificate number recorded for audit
        labor_exempt: Exemption covers labor
        parts_exempt: Exemption covers parts

    Returns:
        TaxCalculationResult with every money field rounded to cents
    """
    if settings is None:
        return loading_result(labor_amount, parts_amount)

    labor = round_currency(coerce_amount(labor_amount))
    parts = round_currency(coerce_amount(parts_amount))

    exempt_labor = exempt_parts = False
    if is_customer_tax_exempt:
        if labor_exempt is None and parts_exempt is None:
            exempt_labor = exempt_parts = True
        else:
            exempt_labor = bool(labor_exempt)
            exempt_parts = bool(parts_exempt)
    is_exempt = exempt_labor or exempt_parts

    labor_rate = 0.0 if exempt_labor else coerce_amount(settings.labor_tax_rate)
    parts_rate = 0.0 if exempt_parts else coerce_amount(settings.parts_tax_rate)
    taxes_labor = settings.apply_tax_to_labor and not exempt_labor
    taxes_parts = settings.apply_tax_to_parts and not exempt_parts

    breakdown = TaxBreakdown(
        labor_tax_rate=labor_rate,
        parts_tax_rate=parts_rate,
        calculation_method=settings.tax_calculation_method,
        display_method=settings.tax_display_method,
        tax_description=settings.tax_description,
        is_exempt=is_exempt,
        labor_exempt=exempt_labor,
        parts_exempt=exempt_parts,
        exemption_certificate=exemption_certificate if is_exempt else None,
    )

    if settings.tax_calculation_method == METHOD_COMBINED:
        rate = coerce_amount(settings.combined_tax_rate)
        labor_base = labor if taxes_labor else 0.0
        parts_base = parts if taxes_parts else 0.0
        total_tax = tax_on(Decimal(str(labor_base)) + Decimal(str(parts_base)), rate)
        labor_tax = tax_on(labor_base, rate)
        if labor_tax > total_tax:
            labor_tax = total_tax
        parts_tax = _sum_cents(total_tax, -labor_tax)
        breakdown.combined_tax_rate = rate
        breakdown.labor_tax_rate = rate if taxes_labor else 0.0
        breakdown.parts_tax_rate = rate if taxes_parts else 0.0
    else:
        labor_tax = tax_on(labor, labor_rate) if taxes_labor else 0.0
        parts_tax = tax_on(parts, parts_rate) if taxes_parts else 0.0
        total_tax = _sum_cents(labor_tax, parts_tax)

    breakdown.tax_description = _describe(
        breakdown, settings.apply_tax_to_labor, settings.apply_tax_to_parts
    )

    labor_total = _sum_cents(labor, labor_tax)
    parts_total = _sum_cents(parts, parts_tax)
    result = TaxCalculationResult(
        labor_amount=labor,
        parts_amount=parts,
        subtotal=_sum_cents(labor, parts),
        labor_tax=labor_tax,
        parts_tax=parts_tax,
        total_tax=total_tax,
        labor_total=labor_total,
        parts_total=parts_total,
        grand_total=_sum_cents(labor_total, parts_total),
        breakdown=breakdown,
    )
    logger.debug(
        f"Shop {settings.shop_id}: labor {labor:.2f} + parts {parts:.2f} "
        f"+ tax {total_tax:.2f} = {result.grand_total:.2f}"
    )
    return result
