from __future__ import annotations

from hotelcare.config import settings
from hotelcare.services.mock_pms_client import MockPMSClient
from hotelcare.services.pms_client import PMSClient
from hotelcare.services.previo_client import PrevioClient


def build_pms_client() -> PMSClient:
    provider = settings.pms_provider.strip().lower()
    if provider == 'mock':
        return MockPMSClient()
    return PrevioClient()
