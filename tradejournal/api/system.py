"""System API — health check, scheduler status, cycle logs, manual trigger."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from tradejournal.database import get_session
from tradejournal.models.cycle_log import CycleLog
from tradejournal.utils.constants import CYCLE_KINDS

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/scheduler")
def scheduler_status():
    """Current scheduler state with job details."""
    from tradejournal.engine.scheduler import get_scheduler_status
    return get_scheduler_status()


@router.post("/trigger/{kind}")
async def trigger_cycle(kind: str):
    """Manually run one monitor cycle ("alerts" or "report")."""
    if kind not in CYCLE_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown cycle kind: {kind}")

    from tradejournal.engine.monitor_job import run_monitor_cycle
    try:
        result = await run_monitor_cycle(kind)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if result.status_code >= 500:
        raise HTTPException(status_code=result.status_code, detail=result.message)
    return asdict(result)


@router.get("/logs")
def cycle_logs(
    kind: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    stmt = select(CycleLog).order_by(CycleLog.timestamp.desc())
    if kind is not None:
        stmt = stmt.where(CycleLog.kind == kind)
    if status is not None:
        stmt = stmt.where(CycleLog.status == status)
    stmt = stmt.offset(offset).limit(limit)
    return session.exec(stmt).all()
