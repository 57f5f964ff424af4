"""Engine settings, overridable through TALLY_* environment variables."""

from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tally.models import AbsencePolicy, OverallMethod


class TallySettings(BaseSettings):
    """Settings for the tally engine."""

    model_config = SettingsConfigDict(env_prefix="TALLY_", extra="ignore")

    # Decimal places kept on every computed score
    score_places: int = Field(default=4, ge=0, le=10)
    # Allowed drift when checking that averaging weights sum to 100
    weight_tolerance: Decimal = Field(default=Decimal("0.1"), ge=0)

    overall_method: OverallMethod = OverallMethod.SUM
    absence_policy: AbsencePolicy = AbsencePolicy.EXCLUDE
    winners_count: int = Field(default=3, ge=1)

    fetch_timeout: float = Field(default=30.0, gt=0)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.score_places)

    def quantize(self, value: Decimal) -> Decimal:
        """Round a computed score to the configured fixed-point precision."""
        return value.quantize(self.quantum, rounding=ROUND_HALF_UP)


@lru_cache
def get_settings() -> TallySettings:
    """Return the process-wide settings instance."""
    return TallySettings()
