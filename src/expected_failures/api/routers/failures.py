import logging
import math
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from pydantic import BaseModel

from ...store.base import RecordStore
from ..security import AuthHeader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expected_failures", dependencies=[Depends(AuthHeader)])

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
DEFAULT_PAGE_SIZE = 50


class ClearRequest(BaseModel):
    # old: buckets before today, all: every bucket, counters: class counters,
    # everything: buckets and counters
    what: Literal["old", "all", "counters", "everything"]


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def _failures_page(
    store: RecordStore, date: Optional[str], page: int, count: int
) -> Dict[str, Any]:
    dates = sorted(store.list_dates(), reverse=True)
    if date is None and dates:
        date = dates[0]

    jobs, total_size = [], 0
    if date is not None:
        records, total_size = store.list_records(date, (page - 1) * count, count)
        jobs = [record.model_dump() for record in records]

    return {
        "dates": dates,
        "date": date,
        "page": page,
        "count": count,
        "total_size": total_size,
        "total_pages": math.ceil(total_size / count) if total_size else 0,
        "jobs": jobs,
        "counters": store.counters(),
    }


@router.get("")
def list_failures(
    page: int = Query(1, ge=1),
    count: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=1000),
    store: RecordStore = Depends(get_store),
):
    """Newest date's failures, plus every known date and the class counters."""
    return _failures_page(store, None, page, count)


@router.get("/stats")
def failure_stats(store: RecordStore = Depends(get_store)):
    return {"failures": store.counters()}


@router.get("/day/{date}")
def list_day_failures(
    date: str = Path(..., pattern=DATE_PATTERN),
    page: int = Query(1, ge=1),
    count: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=1000),
    store: RecordStore = Depends(get_store),
):
    return _failures_page(store, date, page, count)


@router.delete("/day/{date}")
def delete_day(
    date: str = Path(..., pattern=DATE_PATTERN),
    store: RecordStore = Depends(get_store),
):
    store.delete_bucket(date)
    logger.info(f"Deleted expected failures for {date}.")
    return {"status": "deleted", "date": date}


@router.post("/clear")
def clear_failures(request: ClearRequest, store: RecordStore = Depends(get_store)):
    if request.what == "old":
        deleted = store.delete_all_except_today()
        return {"status": "cleared", "what": request.what, "dates": deleted}
    if request.what == "all":
        deleted = store.delete_all_buckets()
        return {"status": "cleared", "what": request.what, "dates": deleted}
    if request.what == "counters":
        store.reset_counters()
    else:
        store.reset_all()
    return {"status": "cleared", "what": request.what}
