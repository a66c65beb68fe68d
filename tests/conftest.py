"""Root-level pytest configuration and shared fixtures.

Provides:
- structlog configuration that works under pytest's capture
- Small hand-built decision models for unit tests
- The bundled delivery demo model for end-to-end tests
"""

from typing import Any, Dict

import pytest
import structlog

from prisma_engine.config import SimulationConfig, reset_config
from prisma_engine.data.fixtures import demo_model, demo_payload
from prisma_engine.data.models import DecisionModel


def pytest_configure(config):
    """Register custom markers and configure test environment."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "cli: mark test as CLI test")

    _configure_test_logging()


def _configure_test_logging() -> None:
    """Configure structlog for tests with processors that need no stdlib logger."""
    processors = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.BoundLogger,
        logger_factory=structlog.PrintLoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,  # Disable caching in tests
    )


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep PRISMA_* variables from the developer's shell out of tests."""
    for name in (
        "PRISMA_ITERATIONS",
        "PRISMA_SENSITIVITY_ITERATIONS",
        "PRISMA_STRESS_ITERATIONS",
        "PRISMA_MAX_PROPAGATION_PASSES",
        "PRISMA_STRESS_RANGE_FACTOR",
        "PRISMA_MAX_FORMULA_LENGTH",
        "PRISMA_RANDOM_SEED",
        "PRISMA_LOG_LEVEL",
        "PRISMA_LOG_FORMAT",
        "PRISMA_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fast_config() -> SimulationConfig:
    """Low iteration counts for quick but stable runs."""
    return SimulationConfig(iterations=400, sensitivity_iterations=200, stress_iterations=200)


@pytest.fixture
def investment_payload() -> Dict[str, Any]:
    """Two-option investment model differing only in the annual return."""
    return {
        "variables": [
            {
                "id": "initial_investment",
                "label": "Initial Investment",
                "value": 10000,
                "min": 10000,
                "max": 10000,
                "distribution": "fixed",
                "unit": "€",
            },
            {
                "id": "annual_return_pct",
                "label": "Annual Return",
                "value": 5,
                "min": 0,
                "max": 10,
                "distribution": "normal",
                "unit": "%",
            },
        ],
        "edges": [],
        "scenarios": [
            {"id": "nothing", "label": "Do Nothing", "changes": {}},
            {
                "id": "aggressive",
                "label": "Aggressive Fund",
                "changes": {"annual_return_pct": {"value": 9, "min": 4, "max": 14}},
            },
            {
                "id": "conservative",
                "label": "Savings Account",
                "changes": {"annual_return_pct": {"value": 2, "min": 1, "max": 3}},
            },
        ],
        "outcome": {
            "id": "gain",
            "label": "Gain after one year",
            "unit": "€",
            "formula": "initial_investment * (1 + annual_return_pct/100) - initial_investment",
        },
    }


@pytest.fixture
def investment_model(investment_payload) -> DecisionModel:
    return DecisionModel.from_payload(investment_payload)


@pytest.fixture
def simple_payload() -> Dict[str, Any]:
    """Two variables, one baseline scenario, outcome on daily deliveries."""
    return {
        "variables": [
            {"id": "driver_count", "value": 5, "min": 5, "max": 5, "distribution": "fixed"},
            {
                "id": "daily_deliveries",
                "value": 80,
                "min": 60,
                "max": 110,
                "distribution": "normal",
            },
        ],
        "edges": [],
        "scenarios": [{"id": "nothing", "label": "Do Nothing", "changes": {}}],
        "outcome": {"id": "revenue", "formula": "daily_deliveries * 10"},
    }


@pytest.fixture
def simple_model(simple_payload) -> DecisionModel:
    return DecisionModel.from_payload(simple_payload)


@pytest.fixture
def dominant_model() -> DecisionModel:
    """One variable with a huge coefficient and several that barely matter."""
    return DecisionModel.from_payload({
        "variables": [
            {"id": "dominant", "value": 5, "min": 0, "max": 10, "distribution": "uniform"},
            {"id": "minor_a", "value": 5, "min": 0, "max": 10, "distribution": "uniform"},
            {"id": "minor_b", "value": 5, "min": 0, "max": 10, "distribution": "normal"},
            {"id": "unused", "value": 5, "min": 0, "max": 10, "distribution": "uniform"},
            {"id": "constant", "value": 3, "distribution": "fixed"},
        ],
        "edges": [],
        "scenarios": [{"id": "nothing", "changes": {}}],
        "outcome": {"id": "score", "formula": "dominant * 1000 + minor_a + minor_b + constant"},
    })


@pytest.fixture
def delivery_payload() -> Dict[str, Any]:
    return demo_payload()


@pytest.fixture
def delivery_model() -> DecisionModel:
    return demo_model()
