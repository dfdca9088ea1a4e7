from fastapi.middleware.cors import CORSMiddleware

from swatch_catalog.config import settings


def configure_cors(app):
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    if not origins:
        # local catalog frontend dev servers
        origins = ["http://localhost:3000", "http://localhost:5173", "http://localhost:8080"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        # the browser needs this to read the export filename
        expose_headers=["Content-Disposition"],
        max_age=86400,
    )
