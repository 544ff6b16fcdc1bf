"""Health check endpoints."""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from findmyestate.db.session import get_db
from findmyestate.models.property import Property

router = APIRouter()


@router.get("/health")
async def health_check(db: Session = Depends(get_db)) -> dict[str, Any]:
    """Database connectivity and listing count. Returns 503 if the database is unreachable."""
    try:
        count = db.query(func.count(Property.id)).scalar()
    except SQLAlchemyError:
        raise HTTPException(status_code=503, detail={"status": "degraded", "db": "error"})
    return {"status": "ok", "db": "ok", "properties": count or 0}
