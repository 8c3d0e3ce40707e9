"""Control API for operating the rental core.

Implements:
- POST /control/rentals - Create rental
- GET /control/rentals - List rentals
- GET /control/rentals/{group_id} - Get rental
- POST /control/rentals/{group_id}/extend - Extend rental
- DELETE /control/rentals/{group_id} - Delete rental
- POST /control/rentals/sweep - Expire overdue rentals
- GET /control/groups/{group_id}/access - Access decision
- GET /control/groups/{group_id}/settings - Group settings
- PATCH /control/groups/{group_id}/settings - Update group settings
- GET /control/groups/{group_id}/inactive - Inactive members
- POST /control/backups - Flush and snapshot
- POST /control/time/advance - Fast-forward virtual time
- POST /control/time/reset - Reset virtual time
- GET /control/status - Status and statistics
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from rental_bot.logging_config import get_logger
from rental_bot.models import (
    AccessResponse,
    AdvanceTimeRequest,
    AdvanceTimeResponse,
    BackupResponse,
    CreateRentalRequest,
    DeleteRentalResponse,
    ExtendRentalRequest,
    InactiveMembersResponse,
    RentalListResponse,
    RentalResponse,
    RentalStatus,
    ResetTimeResponse,
    SettingsResponse,
    StatusResponse,
    SweepResponse,
    UpdateSettingsRequest,
)
from rental_bot.repositories.record_store import PersistenceError
from rental_bot.services.clock import VirtualClock
from rental_bot.services.container import ServiceContainer
from rental_bot.services.rental_manager import InvalidDurationError, UnknownPlanError
from rental_bot.services.time_controller import TimeController

logger = get_logger(__name__)
router = APIRouter(tags=["Control API"], prefix="/control")


def get_services(request: Request) -> ServiceContainer:
    """Services of the running application."""
    return request.app.state.services


def _error(status_code: int, error: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, "message": message})


def _persistence_failed(e: PersistenceError) -> HTTPException:
    logger.error("control_persistence_failed", error=str(e))
    return _error(503, "Persistence failure", str(e))


def _rental_not_found(group_id: str) -> HTTPException:
    logger.warning("rental_not_found", group_id=group_id)
    return _error(404, "Rental not found", f"Group '{group_id}' has no rental")


def _require_time_controller(services: ServiceContainer) -> TimeController:
    if services.time_controller is None:
        raise _error(409, "Time control unavailable", "The service runs on the system clock")
    return services.time_controller


@router.post(
    "/rentals",
    response_model=RentalResponse,
    status_code=201,
    summary="Create rental",
)
def create_rental(
    request: CreateRentalRequest,
    services: ServiceContainer = Depends(get_services),
) -> RentalResponse:
    """Create a rental for a group, replacing any previous one.

    Without duration_hours the plan must be configured and its duration is used.

    Raises:
        400: Non-positive duration
        404: Plan not configured
        503: Rentals could not be written
    """
    logger.info(
        "create_rental_request",
        group_id=request.group_id,
        plan=request.plan,
        duration_hours=request.duration_hours,
    )

    try:
        if request.duration_hours is None:
            rental = services.rentals.create_from_plan(request.group_id, request.plan)
        else:
            rental = services.rentals.create_rental(request.group_id, request.plan, request.duration_hours)
    except UnknownPlanError as e:
        logger.warning("plan_not_found", plan=request.plan)
        raise _error(404, "Plan not found", str(e))
    except InvalidDurationError as e:
        logger.error("invalid_rental_request", error=str(e))
        raise _error(400, "Invalid request", str(e))
    except PersistenceError as e:
        raise _persistence_failed(e)

    return RentalResponse.from_rental(rental, services.clock.now(), message="Rental created successfully")


@router.get("/rentals", response_model=RentalListResponse, summary="List rentals")
def list_rentals(
    status: Optional[RentalStatus] = Query(None, description="Only rentals with this status"),
    services: ServiceContainer = Depends(get_services),
) -> RentalListResponse:
    now = services.clock.now()
    rentals = [RentalResponse.from_rental(r, now) for r in services.rentals.list_rentals(status)]
    return RentalListResponse(total=len(rentals), rentals=rentals)


@router.post("/rentals/sweep", response_model=SweepResponse, summary="Expire overdue rentals")
def sweep_rentals(services: ServiceContainer = Depends(get_services)) -> SweepResponse:
    """Flip every active rental past its end date to expired."""
    try:
        expired = services.rentals.sweep_expired()
    except PersistenceError as e:
        raise _persistence_failed(e)
    return SweepResponse(expired=expired, message=f"Expired {expired} rentals")


@router.get("/rentals/{group_id}", response_model=RentalResponse, summary="Get rental")
def get_rental(group_id: str, services: ServiceContainer = Depends(get_services)) -> RentalResponse:
    """Get a group's rental.

    Raises:
        404: Group has no rental
    """
    rental = services.rentals.get_rental(group_id)
    if rental is None:
        raise _rental_not_found(group_id)
    return RentalResponse.from_rental(rental, services.clock.now())


@router.post("/rentals/{group_id}/extend", response_model=RentalResponse, summary="Extend rental")
def extend_rental(
    group_id: str,
    request: ExtendRentalRequest,
    services: ServiceContainer = Depends(get_services),
) -> RentalResponse:
    """Add hours to a rental's end date.

    Raises:
        400: Non-positive hours
        404: Group has no rental
        503: Rentals could not be written
    """
    logger.info("extend_rental_request", group_id=group_id, hours=request.hours)

    try:
        rental = services.rentals.extend_rental(group_id, request.hours)
    except InvalidDurationError as e:
        logger.error("invalid_extend_request", error=str(e))
        raise _error(400, "Invalid request", str(e))
    except PersistenceError as e:
        raise _persistence_failed(e)

    if rental is None:
        raise _rental_not_found(group_id)
    return RentalResponse.from_rental(
        rental, services.clock.now(), message=f"Rental extended by {request.hours:g} hours"
    )


@router.delete("/rentals/{group_id}", response_model=DeleteRentalResponse, summary="Delete rental")
def delete_rental(group_id: str, services: ServiceContainer = Depends(get_services)) -> DeleteRentalResponse:
    """Remove a group's rental.

    Raises:
        404: Group has no rental
        503: Rentals could not be written
    """
    try:
        deleted = services.rentals.delete_rental(group_id)
    except PersistenceError as e:
        raise _persistence_failed(e)

    if not deleted:
        raise _rental_not_found(group_id)
    return DeleteRentalResponse(group_id=group_id, deleted=True, message="Rental deleted")


@router.get("/groups/{group_id}/access", response_model=AccessResponse, summary="Check group access")
def check_access(group_id: str, services: ServiceContainer = Depends(get_services)) -> AccessResponse:
    """Run the access decision for a group.

    Like a real group event, this starts the trial of a group seen for the
    first time.

    Raises:
        503: The trial grant could not be written
    """
    try:
        has_access = services.access.has_access(group_id)
    except PersistenceError as e:
        raise _persistence_failed(e)

    trial = services.access.trial_status(group_id)
    return AccessResponse(group_id=group_id, has_access=has_access, **trial)


@router.get("/groups/{group_id}/settings", response_model=SettingsResponse, summary="Get group settings")
def get_settings(group_id: str, services: ServiceContainer = Depends(get_services)) -> SettingsResponse:
    return SettingsResponse(group_id=group_id, settings=services.groups.get_settings(group_id))


@router.patch("/groups/{group_id}/settings", response_model=SettingsResponse, summary="Update group settings")
def update_settings(
    group_id: str,
    request: UpdateSettingsRequest,
    services: ServiceContainer = Depends(get_services),
) -> SettingsResponse:
    """Change individual toggles; the others keep their values.

    Raises:
        400: Unknown toggle
        503: Settings could not be written
    """
    partial = request.model_dump(exclude_none=True)
    logger.info("update_settings_request", group_id=group_id, changes=partial)

    try:
        settings = services.groups.update_settings(group_id, partial)
    except ValueError as e:
        logger.error("invalid_settings_request", error=str(e))
        raise _error(400, "Invalid request", str(e))
    except PersistenceError as e:
        raise _persistence_failed(e)

    return SettingsResponse(group_id=group_id, settings=settings)


@router.get(
    "/groups/{group_id}/inactive",
    response_model=InactiveMembersResponse,
    summary="List inactive members",
)
def inactive_members(
    group_id: str,
    days: int = Query(7, ge=0, description="Inactivity threshold in days"),
    services: ServiceContainer = Depends(get_services),
) -> InactiveMembersResponse:
    members = services.activity.inactive_members(group_id, days)
    return InactiveMembersResponse(group_id=group_id, days=days, total=len(members), members=members)


@router.post("/backups", response_model=BackupResponse, status_code=201, summary="Create backup")
def create_backup(services: ServiceContainer = Depends(get_services)) -> BackupResponse:
    """Flush every collection, snapshot them and prune old backups.

    Raises:
        503: Flush or snapshot failed
    """
    try:
        result = services.housekeeping.backup()
    except PersistenceError as e:
        raise _persistence_failed(e)
    return BackupResponse(message="Backup created", **result)


@router.post("/time/advance", response_model=AdvanceTimeResponse, summary="Advance virtual time")
def advance_time(
    request: AdvanceTimeRequest,
    services: ServiceContainer = Depends(get_services),
) -> AdvanceTimeResponse:
    """Advance virtual time, then expire rentals that ended during the jump.

    Raises:
        400: Negative time values
        409: Service runs on the system clock
        503: Rentals could not be written
    """
    controller = _require_time_controller(services)

    logger.info(
        "advance_time_request",
        days=request.days,
        hours=request.hours,
        minutes=request.minutes,
    )

    try:
        result = controller.advance_time(
            days=request.days or 0, hours=request.hours or 0, minutes=request.minutes or 0
        )
    except ValueError as e:
        logger.error("invalid_time_request", error=str(e))
        raise _error(400, "Invalid request", str(e))
    except PersistenceError as e:
        raise _persistence_failed(e)

    return AdvanceTimeResponse(
        previous_time=result["old_time"],
        current_time=result["new_time"],
        advanced_by_seconds=result["advanced_by"].total_seconds(),
        rentals_expired=result["rentals_expired"],
        message=f"Advanced time by {request.days or 0} days, {request.hours or 0} hours, {request.minutes or 0} minutes",
    )


@router.post("/time/reset", response_model=ResetTimeResponse, summary="Reset virtual time")
def reset_time(services: ServiceContainer = Depends(get_services)) -> ResetTimeResponse:
    """Reset virtual time to the real current time.

    Raises:
        409: Service runs on the system clock
    """
    controller = _require_time_controller(services)
    result = controller.reset_time()
    return ResetTimeResponse(
        previous_time=result["old_time"],
        current_time=result["new_time"],
        message="Time reset to real time",
    )


@router.get("/status", response_model=StatusResponse, summary="Get service status")
def get_status(services: ServiceContainer = Depends(get_services)) -> StatusResponse:
    """Current time, record counts, rental counts and scheduler jobs."""
    logger.debug("get_status_request")

    clock = services.clock
    is_virtual = isinstance(clock, VirtualClock)
    statistics = {
        **services.cache.get_statistics(),
        **services.rentals.get_statistics(),
        "rate_limited_chats": services.rate_limiter.tracked_chats(),
        "backups": len(services.store.list_snapshots()),
    }

    return StatusResponse(
        status="running",
        current_time=clock.now(),
        virtual_time=is_virtual,
        time_offset_seconds=clock.offset.total_seconds() if is_virtual else 0.0,
        transport_connected=services.messenger.is_connected,
        statistics=statistics,
        jobs=services.scheduler.get_status(),
    )
