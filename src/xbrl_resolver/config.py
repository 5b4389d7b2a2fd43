"""Configuration management via environment variables.

Reads from .env file (via pydantic-settings) with sensible defaults.
All values can be overridden via environment variables prefixed with
XBRL_RESOLVER_ (e.g. XBRL_RESOLVER_CAPEX_POLICY=PPE_PLUS_INTANGIBLE).

Resolution policy:
    CAPEX_POLICY              — PPE_ONLY | PPE_PLUS_INTANGIBLE
    LABEL_SIMILARITY_FLOOR    — minimum label/tag similarity for stage 4 matches

Anchor override policy (when the best anchor-period candidate looks wrong):
    OVERRIDE_ON_ZERO_VALUE
    OVERRIDE_ON_DISALLOWED_MEMBER
    OVERRIDE_ON_HIGH_DIMENSION_COUNT / HIGH_DIMENSION_THRESHOLD
"""

from __future__ import annotations

from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings


class CapexPolicy(str, Enum):
    PPE_ONLY = "PPE_ONLY"
    PPE_PLUS_INTANGIBLE = "PPE_PLUS_INTANGIBLE"


class Settings(BaseSettings):
    # Capital expenditure composition (deterministic, never a scoring decision)
    capex_policy: CapexPolicy = CapexPolicy.PPE_ONLY

    # Stage 4 accepts a label match only strictly above this floor
    label_similarity_floor: float = 0.5

    # Override rule triggers for the anchor filter escape hatch
    override_on_zero_value: bool = False
    override_on_disallowed_member: bool = True
    override_on_high_dimension_count: bool = True
    high_dimension_threshold: int = 2

    # Sanity bands for derived ratios, in percent
    operating_margin_band: tuple[float, float] = (-50.0, 50.0)
    fcf_margin_band: tuple[float, float] = (-100.0, 100.0)
    roic_band: tuple[float, float] = (-100.0, 200.0)
    roic_tax_rate: float = 0.25
    invested_capital_ceiling: float = 1e15

    # Relative tolerance for assets = liabilities + equity
    balance_equation_tolerance: float = 0.0001

    # Unit used when a fact's unitRef cannot be mapped
    default_unit_ifrs: str = "KRW"
    default_unit_gaap: str = "USD"

    # Missing-tag diagnostics output limits
    missing_tag_sample_size: int = 30
    attempted_tag_sample_size: int = 10

    # .env values often carry quotes or trailing spaces
    @field_validator("capex_policy", "default_unit_ifrs", "default_unit_gaap", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        if isinstance(v, str):
            return v.strip().strip('"').strip("'").strip()
        return v

    @field_validator("label_similarity_floor")
    @classmethod
    def check_floor(cls, v: float) -> float:
        if not 0.0 <= v < 1.0:
            raise ValueError("label_similarity_floor must be in [0, 1)")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "XBRL_RESOLVER_",
        "extra": "ignore",
    }


_config: Settings | None = None


def get_config() -> Settings:
    """Get or create the shared Settings singleton."""
    global _config
    if _config is None:
        _config = Settings()
    return _config


def reset_config() -> None:
    """Drop the cached Settings so the next get_config() re-reads the environment."""
    global _config
    _config = None
