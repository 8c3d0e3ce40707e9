"""Application configuration models.

Models for config/settings.yaml.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class PlanDefinition(BaseModel):
    """Rental plan offered to groups."""

    name: str = Field(..., description="Human-readable plan name")
    price: float = Field(..., ge=0, description="Price in the configured currency")
    duration_hours: int = Field(..., gt=0, description="Rental length in hours")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Basic",
                "price": 150,
                "duration_hours": 72,
            }
        }


class BotConfig(BaseModel):
    """Bot identity."""

    name: str = Field(default="rental-bot", description="Bot display name")
    owner_number: str = Field(default="", description="Owner contact number (digits only)")
    prefix: str = Field(default=".", description="Command prefix used by the chat front end")


class StorageConfig(BaseModel):
    """Record store locations and retention."""

    data_dir: Path = Field(default=Path("database"), description="Directory holding the entity JSON files")
    backup_dir: Optional[Path] = Field(None, description="Backup root (defaults to <data_dir>/backups)")
    backup_retention_days: int = Field(default=30, gt=0, description="Backups older than this are removed")
    activity_flush_every: int = Field(
        default=10, gt=0, description="Flush activity to disk every N recorded messages per member"
    )

    @property
    def resolved_backup_dir(self) -> Path:
        """Backup root, falling back to a directory inside data_dir."""
        return self.backup_dir if self.backup_dir is not None else self.data_dir / "backups"


class RentalConfig(BaseModel):
    """Rental and trial behaviour."""

    enabled: bool = Field(default=True, description="If False, every group has access")
    trial_hours: int = Field(default=72, ge=0, description="Trial window from first contact")
    expiry_warning_hours: int = Field(default=24, gt=0, description="Warn groups this long before expiry")
    currency: str = Field(default="RUB", description="Currency for plan prices")
    plans: dict[str, PlanDefinition] = Field(default_factory=dict, description="Plans by key")


class LimitsConfig(BaseModel):
    """Throughput limits."""

    messages_per_minute: int = Field(default=20, gt=0, description="Outbound sends per chat per window")
    rate_window_ms: int = Field(default=60_000, gt=0, description="Rate limiter window length")
    max_groups: int = Field(default=50, gt=0, description="Soft limit on groups with active rentals")


class LoggingConfig(BaseModel):
    """Log output and retention."""

    log_dir: Optional[Path] = Field(default=Path("logs"), description="Directory for log files (None disables)")
    retention_days: int = Field(default=7, gt=0, description="Log files older than this are removed")


class AppConfig(BaseModel):
    """Complete settings.yaml configuration."""

    bot: BotConfig = Field(default_factory=BotConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    rental: RentalConfig = Field(default_factory=RentalConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
