"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from shop_tax.tax_calculation.models import Customer, JobLine, Part, TaxSettings  # noqa: E402


@pytest.fixture
def shop_settings():
    """Separate-method settings with different labor and parts rates."""
    return TaxSettings(
        shop_id="shop-42",
        labor_tax_rate=8.25,
        parts_tax_rate=6.0,
        combined_tax_rate=5.0,
    )


@pytest.fixture
def job_lines():
    return [
        JobLine(id="jl-1", name="Brake job", category="Brakes", estimated_hours=2, labor_rate=95, total_amount=190.0),
        JobLine(id="jl-2", name="Diagnostics", category="Electrical", estimated_hours=0.5, labor_rate=120),
    ]


@pytest.fixture
def parts():
    return [
        Part(id="p-1", name="Brake pads", job_line_id="jl-1", quantity=2, unit_price=45.5, total_price=91.0),
        Part(id="p-2", name="Rotor", job_line_id="jl-1", quantity=2, unit_price=60),
    ]


@pytest.fixture
def customer():
    return Customer(id="cust-7", name="Acme Fleet")


@pytest.fixture
def sample_work_order():
    """Work order as it arrives from storage: plain dictionaries."""
    return {
        "work_order_number": "WO-1001",
        "customer": {"id": "cust-7", "name": "Acme Fleet", "labor_tax_exempt": False},
        "job_lines": [
            {"id": "jl-1", "name": "Brake job", "estimated_hours": 2, "labor_rate": 95, "total_amount": 190},
            {"id": "jl-2", "name": "Diagnostics", "estimated_hours": "0.5", "labor_rate": "120"},
        ],
        "parts": [
            {"id": "p-1", "name": "Brake pads", "quantity": 2, "unit_price": 45.5, "total_price": 91},
            {"id": "p-2", "name": "Rotor", "quantity": 2, "unit_price": 60},
        ],
    }
