# src/immoinvest/adapters/config.py
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # App & logging
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # HTTP server
    HOST: str = Field(default="127.0.0.1")
    PORT: int = Field(default=8000)

    # -----------------------------
    # Scenario comparison scoring
    # -----------------------------
    WEIGHT_CASHFLOW: float = Field(default=0.5)
    WEIGHT_CAP_RATE: float = Field(default=0.3)
    WEIGHT_CASH_ON_CASH: float = Field(default=0.2)
    MIN_VIABLE_CASHFLOW_PER_UNIT: float = Field(default=75.0)

    # -----------------------------
    # Financing assumptions used when a payload omits them
    # -----------------------------
    DEFAULT_INTEREST_RATE: float = Field(default=5.0)  # percent
    DEFAULT_AMORTIZATION_YEARS: int = Field(default=25)
    DEFAULT_FLIP_DOWN_PAYMENT: float = Field(default=0.20)
    DEFAULT_MULTI_LOAN_TO_VALUE: float = Field(default=0.75)

    # quick comparison / liquidity evaluation model
    QUICK_DOWN_PAYMENT_RATIO: float = Field(default=0.25)
    QUICK_INTEREST_RATE: float = Field(default=4.5)  # percent

    model_config = SettingsConfigDict(
        env_prefix="IMMOINVEST_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("WEIGHT_CASHFLOW", "WEIGHT_CAP_RATE", "WEIGHT_CASH_ON_CASH", mode="before")
    @classmethod
    def _non_negative_weight(cls, v: Any) -> Any:
        # weights are relative; 2 stays 2
        f = float(v)
        if f < 0:
            raise ValueError("weight must be non-negative")
        return f

    @field_validator(
        "DEFAULT_FLIP_DOWN_PAYMENT",
        "DEFAULT_MULTI_LOAN_TO_VALUE",
        "QUICK_DOWN_PAYMENT_RATIO",
        mode="before",
    )
    @classmethod
    def _to_non_negative_fraction(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip().replace("%", "")
        try:
            f = float(v)
        except Exception as err:
            raise ValueError("value must be numeric or percent-like") from err
        if f > 1.0:
            f = f / 100.0
        if f < 0:
            raise ValueError("value must be non-negative")
        return f

    @field_validator("DEFAULT_AMORTIZATION_YEARS", "PORT", mode="before")
    @classmethod
    def _positive_int(cls, v: Any) -> Any:
        i = int(v)
        if i <= 0:
            raise ValueError("must be > 0")
        return i

    @property
    def echo_errors(self) -> bool:
        """Internal error messages are returned to API clients outside production."""
        return self.ENV.strip().lower() != "production"


config = AppConfig()
