from fastapi import FastAPI

from hotelcare.config import settings
from hotelcare.logging_config import setup_logging
from hotelcare.routers import guest, pms, staff
from hotelcare.security.headers import install_cors, install_security_headers
from hotelcare.security.sessions import install_auth_session_middleware

setup_logging(settings.log_level)

app = FastAPI(title='HotelCare Minibar Service')

install_security_headers(app)
install_auth_session_middleware(app)
# Outermost middleware.
install_cors(app)

app.include_router(guest.router)
app.include_router(pms.router)
app.include_router(staff.router)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}
