from collections.abc import Callable

from fastapi import Request

from hotelcare.services.pms_client import PMSClient
from hotelcare.services.provider_factory import build_pms_client


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None


def get_pms_client_factory() -> Callable[[], PMSClient]:
    # Clients are built inside the sync call so a missing credential is audited.
    return build_pms_client
