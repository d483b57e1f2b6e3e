"""
Shop Tax - work order tax and derived totals

Computes labor tax, parts tax and grand totals for shop work orders from
shop-level tax settings kept in a MongoDB settings store.
"""

__version__ = "0.1.0"

from . import tax_calculation
from . import utils

__all__ = ["tax_calculation", "utils"]
