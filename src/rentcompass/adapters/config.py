# src/rentcompass/adapters/config.py
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # App & logging
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # -----------------------------
    # Prediction policy (caller side)
    # -----------------------------
    # Predictions below this confidence are not stored. 0.5 was chosen for
    # initial testing; production may want something stricter.
    PREDICTION_CONFIDENCE_THRESHOLD: float = Field(default=0.5)
    PREDICTION_HORIZONS: list[int] = Field(default_factory=lambda: [3, 6, 12, 24])

    # 40th -> 50th percentile correction for the government baseline
    GOVERNMENT_PERCENTILE_ADJUSTMENT: float = Field(default=1.18)

    MODEL_VERSION: str = Field(default="v1.0")

    model_config = SettingsConfigDict(
        env_prefix="RENTCOMPASS_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("PREDICTION_CONFIDENCE_THRESHOLD", mode="before")
    @classmethod
    def _to_fraction(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip().replace("%", "")
        try:
            f = float(v)
        except Exception as err:
            raise ValueError("threshold must be numeric or percent-like") from err
        if f > 1.0:
            f = f / 100.0
        if f < 0:
            raise ValueError("threshold must be non-negative")
        return f

    @field_validator("PREDICTION_HORIZONS")
    @classmethod
    def _known_horizons(cls, v: list[int]) -> list[int]:
        allowed = {3, 6, 12, 24}
        bad = [h for h in v if h not in allowed]
        if bad:
            raise ValueError(f"unsupported horizons: {bad}")
        return v

    @field_validator("GOVERNMENT_PERCENTILE_ADJUSTMENT", mode="before")
    @classmethod
    def _adjustment_positive(cls, v: Any) -> Any:
        f = float(v)
        if f <= 0:
            raise ValueError("GOVERNMENT_PERCENTILE_ADJUSTMENT must be > 0")
        return f


config = AppConfig()
