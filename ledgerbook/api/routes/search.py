"""Global search across customers, invoices and payments."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgerbook.api.deps import get_db
from ledgerbook.services import search_service

router = APIRouter()


@router.get("", response_model=list)
def global_search(
    q: str = Query("", max_length=100),
    limit: int = Query(20, ge=1, le=50),
    db: Session = Depends(get_db),
):
    return search_service.global_search(db, q, limit)
