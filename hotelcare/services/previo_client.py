from __future__ import annotations

import base64
import http.client
import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pydantic import ValidationError

from hotelcare.config import settings
from hotelcare.errors import ConfigurationError, PMSRequestError
from hotelcare.services.pms_client import MinibarConsumptionRequest, PMSResponse, RoomStatusRequest

logger = logging.getLogger(__name__)


class PrevioClient:
    def __init__(
        self,
        *,
        api_url: str | None = None,
        user: str | None = None,
        password: str | None = None,
        room_status_url: str | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        api_url = api_url or settings.pms_api_url
        user = user or settings.pms_api_user
        password = password or settings.pms_api_password
        if not api_url or not user or not password:
            raise ConfigurationError('Previo API credentials not configured')

        self.api_url = api_url
        self.room_status_url = room_status_url or settings.pms_room_status_url
        self.timeout_seconds = timeout_seconds or settings.pms_timeout_seconds
        credentials = base64.b64encode(f'{user}:{password}'.encode('utf-8')).decode('ascii')
        self.headers = {
            'Authorization': f'Basic {credentials}',
            'Content-Type': 'application/json',
        }

    def _send(self, method: str, url: str, payload: dict, extra_headers: dict | None = None) -> PMSResponse:
        req = Request(
            url=url,
            data=json.dumps(payload).encode('utf-8'),
            headers={**self.headers, **(extra_headers or {})},
            method=method,
        )
        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            logger.warning('Previo API error %s on %s: %s', exc.code, url, detail[:500])
            raise PMSRequestError(f'Previo API error: {exc.code} {exc.reason}', status_code=exc.code) from exc
        except URLError as exc:
            raise PMSRequestError(f'Previo API network error: {exc.reason}') from exc
        except TimeoutError as exc:
            raise PMSRequestError(f'Previo API timed out after {self.timeout_seconds}s') from exc
        except (http.client.HTTPException, OSError) as exc:
            raise PMSRequestError(f'Previo API connection failed: {exc!r}') from exc

        try:
            body = raw.decode('utf-8')
            parsed = PMSResponse.model_validate(json.loads(body) if body.strip() else {})
        except (ValueError, ValidationError) as exc:
            preview = raw[:100].decode('utf-8', errors='replace')
            raise PMSRequestError(f'Invalid JSON response from Previo API: {preview}') from exc

        if parsed.error:
            raise PMSRequestError(f'Previo API returned errors: {parsed.error}')
        return parsed

    def add_minibar_consumption(self, request: MinibarConsumptionRequest) -> PMSResponse:
        return self._send('POST', self.api_url, request.model_dump(mode='json'))

    def update_room_status(self, *, hotel_id: str, request: RoomStatusRequest) -> PMSResponse:
        return self._send(
            'PUT',
            self.room_status_url,
            request.model_dump(mode='json', by_alias=True),
            extra_headers={'X-Previo-Hotel-ID': hotel_id},
        )
