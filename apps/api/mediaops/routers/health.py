from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mediaops.db.session import get_session

router = APIRouter(tags=["health"])

# One round trip: proves the schema is migrated and shows how far the workers lag.
_BACKLOG_SQL = text(
    """
    SELECT
      (SELECT count(*) FROM bg_jobs WHERE status = 'queued') AS queued_jobs,
      (SELECT count(*) FROM download_artifacts WHERE status IN ('PENDING', 'GENERATING'))
        AS open_artifacts
    """
)


class ReadinessOut(BaseModel):
    status: str
    queued_jobs: int
    open_artifacts: int


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", response_model=ReadinessOut)
def readyz(session: Session = Depends(get_session)) -> ReadinessOut:
    try:
        row = session.execute(_BACKLOG_SQL).one()
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="database not ready",
        ) from e
    return ReadinessOut(status="ready", queued_jobs=row.queued_jobs, open_artifacts=row.open_artifacts)
