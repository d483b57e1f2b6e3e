"""Tax calculation module entry point."""

from .calculator import calculate_tax
from .models import Customer, JobLine, Part, TaxCalculationResult, TaxSettings
from .repository import SettingsStoreError, TaxSettingsRepository
from .settings import TaxSettingsProvider
from .totals import WorkOrderTaxCalculations, build_invoice_summary, derive_work_order_totals

__all__ = [
    "calculate_tax",
    "Customer",
    "JobLine",
    "Part",
    "TaxCalculationResult",
    "TaxSettings",
    "SettingsStoreError",
    "TaxSettingsRepository",
    "TaxSettingsProvider",
    "WorkOrderTaxCalculations",
    "build_invoice_summary",
    "derive_work_order_totals",
]
