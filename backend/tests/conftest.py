"""
Pytest configuration and fixtures for the business case engine test suite

Markers:
    - unit: Fast unit tests
    - property: Property-based tests (Hypothesis)
    - metamorphic: Metamorphic relation tests
    - slow: Performance and stress tests (excluded by default)
    - integration: Integration tests requiring full stack
    - golden: Golden dataset regression tests
"""

import copy
import os
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import run_models


# ═══════════════════════════════════════════════════════════════════════════════
# PYTEST CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "property: Property-based tests (Hypothesis)")
    config.addinivalue_line("markers", "metamorphic: Metamorphic relation tests")
    config.addinivalue_line("markers", "slow: Performance/stress tests (excluded by default)")
    config.addinivalue_line("markers", "integration: Integration tests requiring full stack")
    config.addinivalue_line("markers", "golden: Golden dataset regression tests")


def pytest_addoption(parser):
    """Add custom CLI options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests"
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="Need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh in-memory database session for each test"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    run_models.Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()


# ═══════════════════════════════════════════════════════════════════════════════
# ASSUMPTION DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════════

RECURRING_DOCUMENT = {
    "meta": {"title": "SaaS Launch", "business_model": "recurring", "periods": 24, "currency": "EUR"},
    "assumptions": {
        "pricing": {"avg_unit_price": {"value": 100, "unit": "EUR"}},
        "customers": {
            "churn_pct": {"value": 0.02},
            "segments": [
                {
                    "id": "smb",
                    "label": "SMB",
                    "volume": {
                        "type": "pattern",
                        "pattern_type": "linear_growth",
                        "series": [{"period": 1, "value": 100}],
                        "monthly_flat_increase": {"value": 10},
                    },
                }
            ],
        },
        "unit_economics": {"cac": {"value": 50}},
        "opex": [
            {"name": "Sales & Marketing", "value": {"value": 2000}},
            {"name": "R&D", "value": {"value": 3000}},
            {"name": "G&A", "value": {"value": 1000}},
        ],
        "capex": [
            {"name": "Platform build", "timeline": {"type": "time_series", "series": [{"period": 1, "value": 20000}]}}
        ],
        "financial": {"discount_rate": {"value": 0.10}},
    },
    "drivers": [
        {"key": "price", "label": "Unit price", "path": "assumptions.pricing.avg_unit_price.value",
         "range": [80, 100, 120], "rationale": "Pricing power", "unit": "EUR"},
        {"key": "cac", "label": "Customer acquisition cost", "path": "assumptions.unit_economics.cac.value",
         "range": [40, 60], "rationale": "Channel efficiency"},
    ],
}

UNIT_SALES_DOCUMENT = {
    "meta": {"title": "Hardware Kit", "business_model": "unit_sales", "periods": 12},
    "assumptions": {
        "pricing": {
            "avg_unit_price": {"value": 50},
            "yearly_adjustments": {"pricing_factors": [{"year": 2, "factor": 1.05}]},
        },
        "customers": {
            "segments": [
                {
                    "id": "retail",
                    "volume": {
                        "pattern_type": "geometric_growth",
                        "base_value": {"value": 1000},
                        "growth_rate": {"value": 0.05},
                    },
                }
            ]
        },
        "opex": [
            {"name": "Marketing", "cost_structure": {"fixed_component": 5000, "variable_revenue_rate": 0.1}},
        ],
    },
}

COST_SAVINGS_DOCUMENT = {
    "meta": {"title": "Process Automation", "business_model": "cost_savings", "periods": 12},
    "assumptions": {
        "cost_savings": {
            "baseline_costs": [
                {
                    "id": "ops",
                    "current_monthly_cost": {"value": 10000},
                    "savings_potential_pct": {"value": 20},
                    "implementation_timeline": {"start_month": 1, "ramp_up_months": 4},
                }
            ],
            "efficiency_gains": [
                {
                    "id": "hours",
                    "baseline_value": {"value": 500},
                    "improved_value": {"value": 300},
                    "value_per_unit": {"value": 20},
                }
            ],
        },
    },
}

MARKET_DOCUMENT = {
    "meta": {"title": "EU Market Entry", "base_year": 2024},
    "market_sizing": {
        "total_addressable_market": {"base_value": {"value": 1_000_000_000}, "growth_rate": {"value": 10}},
        "serviceable_addressable_market": {"percentage_of_tam": {"value": 40}},
        "serviceable_obtainable_market": {"percentage_of_sam": {"value": 10}},
    },
    "market_share": {
        "current_position": {"current_share": {"value": 1}},
        "target_position": {
            "target_share": {"value": 5},
            "target_timeframe": {"value": 5},
            "penetration_strategy": "linear",
        },
    },
    "competitive_landscape": {
        "competitors": [
            {"name": "Incumbent", "market_share": {"value": 30}, "threat_level": "high", "positioning": "premium"},
            {"name": "Challenger", "market_share": {"value": 20}, "threat_level": "medium"},
        ],
        "competitive_advantages": ["speed", "price"],
        "market_structure": {"barriers_to_entry": "medium"},
    },
    "customer_analysis": {
        "market_segments": [
            {"id": "ent", "name": "Enterprise", "size_percentage": {"value": 40}, "growth_rate": {"value": 8}},
            {"id": "smb", "name": "SMB", "size_percentage": {"value": 25}, "growth_rate": {"value": 12}},
        ]
    },
}


@pytest.fixture
def recurring_document():
    return copy.deepcopy(RECURRING_DOCUMENT)


@pytest.fixture
def unit_sales_document():
    return copy.deepcopy(UNIT_SALES_DOCUMENT)


@pytest.fixture
def cost_savings_document():
    return copy.deepcopy(COST_SAVINGS_DOCUMENT)


@pytest.fixture
def market_document():
    return copy.deepcopy(MARKET_DOCUMENT)
