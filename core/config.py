"""Ledger configuration."""

import os

from pydantic import BaseModel, Field


class LedgerConfig(BaseModel):
    """
    Ledger configuration.

    Secrets (database and Valkey URLs) are not here; they come from Vault.
    """

    # Companion receivable created for the unpaid part of a partial deposit
    remainder_grace_days: int = Field(
        default=30,
        description="Days after the deposit date before the remainder is due",
        ge=0,
        le=365,
    )

    # Calendar used for overdue checks
    business_timezone: str = Field(
        default="UTC",
        description="IANA timezone whose calendar date decides 'overdue'",
    )

    # Listing
    list_limit_default: int = Field(default=50, ge=1)
    list_limit_max: int = Field(default=500, ge=1)

    # Dashboard summary cache
    summary_cache_ttl_seconds: int = Field(
        default=300,
        description="How long the ledger summary stays cached in Valkey",
        ge=1,
    )

    # Receipts
    attachment_dir: str = Field(
        default="./data/receipts",
        description="Directory where uploaded receipts are stored",
    )
    max_receipt_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest accepted receipt upload",
        ge=1,
    )
    allowed_receipt_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp", "application/pdf"],
    )

    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Build config from LEDGER_* environment variables, defaults elsewhere."""
        values = {}
        for field_name in cls.model_fields:
            raw = os.getenv(f"LEDGER_{field_name.upper()}")
            if raw is None:
                continue
            if field_name == "allowed_receipt_types":
                values[field_name] = [t.strip() for t in raw.split(",") if t.strip()]
            else:
                values[field_name] = raw
        return cls.model_validate(values)
