from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from hotelcare.config import settings


ROBOTS_HEADER = "noindex, nofollow, noarchive"


def install_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Robots-Tag"] = ROBOTS_HEADER
        response.headers["X-Content-Type-Options"] = "nosniff"
        if request.url.path.startswith("/guest"):
            # Room tokens travel in the query string.
            response.headers["Referrer-Policy"] = "no-referrer"
            response.headers["Cache-Control"] = "no-store"
        return response


def install_cors(app: FastAPI) -> None:
    # Guest pages are served from the hotel front end on another origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "content-type", "x-client-info", "apikey"],
    )
