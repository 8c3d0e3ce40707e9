"""Pydantic models for configuration, stored records, transport events and the control API."""

# Configuration models
from .config import (
    PlanDefinition,
    BotConfig,
    StorageConfig,
    RentalConfig,
    LimitsConfig,
    LoggingConfig,
    AppConfig,
)

# Rental models
from .rental import (
    RentalStatus,
    RentalRecord,
)

# Group, user and activity models
from .group import (
    GroupRecord,
    UserRecord,
    ActivityRecord,
    activity_key,
)

# Settings models
from .settings import (
    AntiSpamSettings,
    ModerationSettings,
    GroupSettings,
    default_settings,
)

# Transport event models
from .events import (
    ParticipantAction,
    InboundMessage,
    ParticipantUpdate,
    GroupMetadata,
)

# API request/response models (Control API)
from .api_request import (
    CreateRentalRequest,
    RentalResponse,
    RentalListResponse,
    ExtendRentalRequest,
    DeleteRentalResponse,
    SweepResponse,
    AccessResponse,
    SettingsResponse,
    UpdateSettingsRequest,
    InactiveMembersResponse,
    BackupResponse,
    AdvanceTimeRequest,
    AdvanceTimeResponse,
    ResetTimeResponse,
    StatusResponse,
    ErrorResponse,
)

__all__ = [
    # Configuration
    "PlanDefinition",
    "BotConfig",
    "StorageConfig",
    "RentalConfig",
    "LimitsConfig",
    "LoggingConfig",
    "AppConfig",
    # Rental
    "RentalStatus",
    "RentalRecord",
    # Group, user, activity
    "GroupRecord",
    "UserRecord",
    "ActivityRecord",
    "activity_key",
    # Settings
    "AntiSpamSettings",
    "ModerationSettings",
    "GroupSettings",
    "default_settings",
    # Events
    "ParticipantAction",
    "InboundMessage",
    "ParticipantUpdate",
    "GroupMetadata",
    # API
    "CreateRentalRequest",
    "RentalResponse",
    "RentalListResponse",
    "ExtendRentalRequest",
    "DeleteRentalResponse",
    "SweepResponse",
    "AccessResponse",
    "SettingsResponse",
    "UpdateSettingsRequest",
    "InactiveMembersResponse",
    "BackupResponse",
    "AdvanceTimeRequest",
    "AdvanceTimeResponse",
    "ResetTimeResponse",
    "StatusResponse",
    "ErrorResponse",
]
