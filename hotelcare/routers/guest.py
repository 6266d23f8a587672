from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from hotelcare.db import get_db
from hotelcare.dependencies import get_client_ip
from hotelcare.errors import InvalidInput, InvalidToken
from hotelcare.services.audit_service import log_audit
from hotelcare.services.catalog_service import assemble_catalog
from hotelcare.services.room_token_service import resolve_room
from hotelcare.services.usage_service import ITEMS_REQUIRED_ERROR, IngestResult, ingest_guest_usage, parse_guest_items

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/guest', tags=['guest'])

INVALID_QR = 'Invalid QR code'
INTERNAL_ERROR = 'Internal server error'


@router.get('/minibar')
def guest_minibar_data(
    room_token: str | None = Query(default=None, alias='roomToken'),
    db: Session = Depends(get_db),
):
    if not room_token or not room_token.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='roomToken is required')

    try:
        room = resolve_room(db, room_token)
        catalog = assemble_catalog(db, room=room)
    except InvalidToken as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INVALID_QR) from exc
    except Exception as exc:
        logger.exception('Error in guest minibar catalog read')
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR) from exc
    return catalog.as_response()


def _record_guest_submission(db: Session, body: dict, ip: str | None) -> IngestResult:
    try:
        # Shape errors win over a bad token, like the scan page expects.
        parse_guest_items(body.get('items'))
        room = resolve_room(db, str(body['roomToken']))
        result = ingest_guest_usage(db, room=room, raw_items=body.get('items'))
        log_audit(
            db,
            actor_principal_id=None,
            action='GUEST_MINIBAR_SUBMITTED',
            ip=ip,
            metadata={
                'room_id': room.id,
                'room_number': room.room_number,
                'inserted': result.inserted_count,
                'skipped': result.skipped_count,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result


@router.post('/minibar')
async def guest_minibar_submit(
    request: Request,
    db: Session = Depends(get_db),
):
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ITEMS_REQUIRED_ERROR) from exc
    if not isinstance(body, dict) or not str(body.get('roomToken') or '').strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ITEMS_REQUIRED_ERROR)

    try:
        result = await run_in_threadpool(_record_guest_submission, db, body, get_client_ip(request))
    except InvalidInput as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except InvalidToken as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INVALID_QR) from exc
    except Exception as exc:
        logger.exception('Error in guest minibar submit')
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR) from exc

    return {
        'success': True,
        'inserted': result.inserted_count,
        'skipped': result.skipped_count,
        'room_number': result.room_number,
    }
