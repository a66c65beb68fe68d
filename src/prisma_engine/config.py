"""Configuration management for the simulation engine.

Iteration counts, the propagation pass cap and the stress-test range
factor are read from environment variables so host applications can
trade precision for latency without code changes.
"""

from dataclasses import dataclass
import os
from typing import Optional


@dataclass
class SimulationConfig:
    """Simulation configuration."""

    iterations: int = 1000
    sensitivity_iterations: int = 300
    stress_iterations: int = 500
    max_propagation_passes: int = 100
    stress_range_factor: float = 2.0
    max_formula_length: int = 1000
    random_seed: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.iterations < 1:
            raise ValueError("iterations must be >= 1")
        if self.sensitivity_iterations < 1:
            raise ValueError("sensitivity_iterations must be >= 1")
        if self.stress_iterations < 1:
            raise ValueError("stress_iterations must be >= 1")
        if self.max_propagation_passes < 1:
            raise ValueError("max_propagation_passes must be >= 1")
        if self.stress_range_factor <= 0:
            raise ValueError("stress_range_factor must be positive")
        if self.max_formula_length < 1:
            raise ValueError("max_formula_length must be >= 1")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    log_file: Optional[str] = None
    enable_colors: bool = True


class Config:
    """Main configuration class."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.env = os.getenv("PRISMA_ENV", "development")

        seed = os.getenv("PRISMA_RANDOM_SEED")
        self.simulation = SimulationConfig(
            iterations=int(os.getenv("PRISMA_ITERATIONS", "1000")),
            sensitivity_iterations=int(
                os.getenv("PRISMA_SENSITIVITY_ITERATIONS", "300")
            ),
            stress_iterations=int(os.getenv("PRISMA_STRESS_ITERATIONS", "500")),
            max_propagation_passes=int(
                os.getenv("PRISMA_MAX_PROPAGATION_PASSES", "100")
            ),
            stress_range_factor=float(
                os.getenv("PRISMA_STRESS_RANGE_FACTOR", "2.0")
            ),
            max_formula_length=int(os.getenv("PRISMA_MAX_FORMULA_LENGTH", "1000")),
            random_seed=int(seed) if seed else None,
        )

        self.logging = LoggingConfig(
            level=os.getenv("PRISMA_LOG_LEVEL", "INFO"),
            format=os.getenv("PRISMA_LOG_FORMAT", "console"),
            log_file=os.getenv("PRISMA_LOG_FILE"),
            enable_colors=os.getenv("PRISMA_LOG_COLORS", "true").lower() == "true",
        )

    def is_production(self) -> bool:
        """Check if running in production.

        Returns:
            True if production environment
        """
        return self.env.lower() == "production"

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(env={self.env}, iterations={self.simulation.iterations})"


def get_config() -> Config:
    """Get global configuration instance.

    Returns:
        Configuration instance
    """
    if not hasattr(get_config, "_instance"):
        get_config._instance = Config()

    return get_config._instance


def reset_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment."""
    if hasattr(get_config, "_instance"):
        del get_config._instance
