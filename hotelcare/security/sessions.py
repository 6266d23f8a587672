from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from sqlalchemy import select

from hotelcare.auth import Principal, Role
from hotelcare.db import SessionLocal
from hotelcare.models import Principal as PrincipalModel
from hotelcare.models import WebSession


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def bearer_token(request: Request) -> str | None:
    header = request.headers.get('authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_principal_from_token(db, token: str | None) -> Principal | None:
    if not token:
        return None

    row = db.execute(
        select(WebSession, PrincipalModel)
        .join(PrincipalModel, PrincipalModel.id == WebSession.principal_id)
        .where(WebSession.session_token == token)
    ).one_or_none()
    if not row:
        return None

    web_session, principal = row
    now = _now()
    if web_session.revoked_at is not None or _as_utc(web_session.expires_at) <= now:
        return None

    web_session.last_seen_at = now
    role = Role(principal.role.value if hasattr(principal.role, 'value') else principal.role)
    return Principal(
        id=principal.id,
        username=principal.username,
        role=role,
        assigned_hotel=principal.assigned_hotel,
        organization_slug=principal.organization_slug,
        active=principal.active,
    )


def install_auth_session_middleware(app: FastAPI) -> None:
    """Attach the staff principal behind a bearer token; guest routes stay anonymous."""

    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        request.state.principal = None
        token = bearer_token(request)
        if token:
            session_factory = getattr(request.app.state, 'session_factory', SessionLocal)
            with session_factory() as db:
                request.state.principal = load_principal_from_token(db, token)
                db.commit()
        return await call_next(request)
