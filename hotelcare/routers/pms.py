from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from hotelcare.auth import STAFF_ROLES, Principal, Role, require_role
from hotelcare.db import get_db
from hotelcare.dependencies import get_pms_client_factory
from hotelcare.services.audit_service import list_sync_history
from hotelcare.services.pms_client import PMSClient
from hotelcare.services.pms_sync_service import sync_minibar, sync_room_status

router = APIRouter(prefix='/pms', tags=['pms'])


async def _raw_body(request: Request):
    # Malformed JSON still has to reach the sync service so the attempt is audited.
    try:
        return await request.json()
    except ValueError:
        return None


@router.post('/minibar')
async def pms_minibar_push(
    request: Request,
    principal: Principal = Depends(require_role(*STAFF_ROLES)),
    db: Session = Depends(get_db),
    client_factory: Callable[[], PMSClient] = Depends(get_pms_client_factory),
):
    raw_payload = await _raw_body(request)
    result = await run_in_threadpool(
        sync_minibar,
        db,
        client_factory=client_factory,
        raw_payload=raw_payload,
        initiated_by=principal.id,
    )
    return JSONResponse(result.to_response(), status_code=result.http_status)


@router.post('/room-status')
async def pms_room_status_push(
    request: Request,
    principal: Principal = Depends(require_role(*STAFF_ROLES)),
    db: Session = Depends(get_db),
    client_factory: Callable[[], PMSClient] = Depends(get_pms_client_factory),
):
    raw_payload = await _raw_body(request)
    result = await run_in_threadpool(
        sync_room_status,
        db,
        client_factory=client_factory,
        raw_payload=raw_payload,
        initiated_by=principal.id,
    )
    return JSONResponse(result.to_response(), status_code=result.http_status)


@router.get('/sync-history')
def pms_sync_history(
    hotel_id: str | None = Query(default=None, alias='hotelId'),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: Principal = Depends(require_role(Role.ADMIN, Role.MANAGER)),
):
    return {'history': list_sync_history(db, hotel_id=hotel_id, limit=limit)}
