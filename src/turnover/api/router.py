"""REST API router."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from turnover import __version__
from turnover.api.deps import (
    get_engine,
    get_monitor,
    get_notifier,
    verify_admin_key,
    verify_api_key,
)
from turnover.api.schemas import (
    AlertResponse,
    AssignRequest,
    BookingConfirmedRequest,
    BookingConfirmedResponse,
    CheckoutSweepResponse,
    HealthResponse,
    InspectionRequest,
    InspectionResponse,
    ListAlertsResponse,
    ListTasksResponse,
    PropertyResponse,
    ResolveAlertRequest,
    TaskResponse,
    TimelineResponse,
    TimeoutSweepResponse,
    TransitionRequest,
)
from turnover.engine.core import TurnoverEngine
from turnover.engine.errors import (
    NotFoundError,
    TransientStoreError,
    TurnoverError,
    ValidationError,
)
from turnover.integrations.notifications import NotificationGateway
from turnover.models import AlertType, TaskStatus, TaskType
from turnover.monitor.timeline_monitor import TimelineMonitor
from turnover.observability.metrics import metrics
from turnover.tasks.checkout import run_checkout_sweep
from turnover.tasks.timeouts import run_timeout_sweep

router = APIRouter(prefix="/v1", dependencies=[Depends(verify_api_key)])


def _http_error(e: TurnoverError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(e, ValidationError):
        status_code = 422
    elif isinstance(e, NotFoundError):
        status_code = 404
    elif isinstance(e, TransientStoreError):
        status_code = 503
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail={"code": e.code, "message": e.message})


# ============================================================================
# Health & Metrics
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/metrics")
async def get_metrics():
    """In-process counters, gauges and histograms."""
    return metrics.snapshot()


# ============================================================================
# Bookings & Timelines
# ============================================================================


@router.post("/bookings/confirmed", response_model=BookingConfirmedResponse)
async def booking_confirmed(
    request: BookingConfirmedRequest,
    engine: TurnoverEngine = Depends(get_engine),
    monitor: Optional[TimelineMonitor] = Depends(get_monitor),
):
    """Generate the turnover task graph for a confirmed booking."""
    try:
        _, created = await engine.create_timeline(request.to_event())
        timeline, tasks = await engine.get_timeline(request.booking_id)
    except TurnoverError as e:
        raise _http_error(e)

    if monitor and not timeline.is_ready():
        monitor.watch(timeline.booking_id)
    return BookingConfirmedResponse(
        created=created,
        timeline=TimelineResponse.from_timeline(timeline, tasks),
    )


@router.get("/bookings/{booking_id}/timeline", response_model=TimelineResponse)
async def get_timeline(
    booking_id: str,
    engine: TurnoverEngine = Depends(get_engine),
):
    """Get a booking's timeline and tasks."""
    try:
        timeline, tasks = await engine.get_timeline(booking_id)
    except TurnoverError as e:
        raise _http_error(e)
    return TimelineResponse.from_timeline(timeline, tasks)


# ============================================================================
# Tasks
# ============================================================================


@router.get("/tasks", response_model=ListTasksResponse)
async def list_tasks(
    booking_id: Optional[str] = Query(None),
    property_id: Optional[str] = Query(None),
    status: Optional[TaskStatus] = Query(None),
    task_type: Optional[TaskType] = Query(None),
    scheduled_from: Optional[datetime] = Query(None),
    scheduled_to: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    engine: TurnoverEngine = Depends(get_engine),
):
    """List tasks with optional filtering."""
    tasks = await engine.list_tasks(
        booking_id=booking_id,
        property_id=property_id,
        status=status,
        task_type=task_type,
        scheduled_from=scheduled_from,
        scheduled_to=scheduled_to,
        limit=limit,
    )
    return ListTasksResponse(tasks=[TaskResponse.from_task(t) for t in tasks])


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    engine: TurnoverEngine = Depends(get_engine),
):
    """Get task by ID."""
    try:
        task = await engine.get_task(task_id)
    except TurnoverError as e:
        raise _http_error(e)
    return TaskResponse.from_task(task)


@router.post("/tasks/{task_id}/transition", response_model=TaskResponse)
async def transition_task(
    task_id: UUID,
    request: TransitionRequest,
    engine: TurnoverEngine = Depends(get_engine),
):
    """Apply a staff action to a task."""
    evidence = request.completion_evidence.to_model() if request.completion_evidence else None
    try:
        task = await engine.transition(
            task_id,
            request.new_status,
            staff_id=request.staff_id,
            evidence=evidence,
        )
    except TurnoverError as e:
        raise _http_error(e)
    return TaskResponse.from_task(task)


@router.post("/tasks/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: UUID,
    request: AssignRequest,
    engine: TurnoverEngine = Depends(get_engine),
):
    """Assign a task explicitly or by skill match."""
    try:
        task = await engine.assign(task_id, request.staff_id)
    except TurnoverError as e:
        raise _http_error(e)
    return TaskResponse.from_task(task)


@router.post("/tasks/{task_id}/inspection", response_model=InspectionResponse)
async def submit_inspection(
    task_id: UUID,
    request: InspectionRequest,
    engine: TurnoverEngine = Depends(get_engine),
):
    """Submit an inspection outcome."""
    try:
        outcome = await engine.submit_inspection(task_id, request.to_result())
    except TurnoverError as e:
        raise _http_error(e)
    return InspectionResponse(
        task=TaskResponse.from_task(outcome.task),
        alert=AlertResponse.from_alert(outcome.alert),
        maintenance_tasks=[TaskResponse.from_task(t) for t in outcome.maintenance_tasks],
        property_blocked=outcome.property_blocked,
    )


# ============================================================================
# Properties
# ============================================================================


@router.post("/properties/{property_id}/unblock", response_model=PropertyResponse)
async def unblock_property(
    property_id: str,
    engine: TurnoverEngine = Depends(get_engine),
):
    """Clear a property's blocked flag."""
    try:
        prop = await engine.unblock_property(property_id)
    except TurnoverError as e:
        raise _http_error(e)
    return PropertyResponse.from_property(prop)


# ============================================================================
# Alerts
# ============================================================================


@router.get("/alerts", response_model=ListAlertsResponse)
async def list_alerts(
    resolved: Optional[bool] = Query(None),
    alert_type: Optional[AlertType] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    engine: TurnoverEngine = Depends(get_engine),
):
    """List operator alerts, newest first."""
    alerts = await engine.list_alerts(resolved=resolved, alert_type=alert_type, limit=limit)
    return ListAlertsResponse(alerts=[AlertResponse.from_alert(a) for a in alerts])


@router.post("/alerts/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: UUID,
    request: ResolveAlertRequest,
    engine: TurnoverEngine = Depends(get_engine),
):
    """Mark an alert resolved."""
    try:
        alert = await engine.resolve_alert(alert_id, request.resolved_by)
    except TurnoverError as e:
        raise _http_error(e)
    return AlertResponse.from_alert(alert)


# ============================================================================
# Admin
# ============================================================================


@router.post(
    "/admin/sweeps/timeouts",
    response_model=TimeoutSweepResponse,
    dependencies=[Depends(verify_admin_key)],
)
async def trigger_timeout_sweep():
    """Run the offer/job timeout sweep now."""
    result = await run_timeout_sweep()
    return TimeoutSweepResponse(**result.model_dump())


@router.post(
    "/admin/sweeps/checkout",
    response_model=CheckoutSweepResponse,
    dependencies=[Depends(verify_admin_key)],
)
async def trigger_checkout_sweep(
    notifier: NotificationGateway = Depends(get_notifier),
):
    """Run the checkout sweep now."""
    result = await run_checkout_sweep(notifier=notifier)
    return CheckoutSweepResponse(**result.model_dump())
