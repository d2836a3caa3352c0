"""
Runtime configuration read from environment variables.
"""

import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Settings:
    """Engine settings. Rates are percentages (18 means 18%)."""

    environment: str = "dev"
    port: int = 8080
    gst_rate: Decimal = Decimal("18")
    tds_rate: Decimal = Decimal("2")
    number_retry_attempts: int = 5

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.environ.get("ENVIRONMENT", "dev"),
            port=int(os.environ.get("PORT", 8080)),
            gst_rate=Decimal(os.environ.get("GST_RATE", "18")),
            tds_rate=Decimal(os.environ.get("TDS_RATE", "2")),
            number_retry_attempts=int(os.environ.get("NUMBER_RETRY_ATTEMPTS", 5)),
        )
