"""
Courtage CRM - API Backend

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 3001 --reload
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from config import CORS_ORIGINS, ENABLE_EMAIL_RECEIVER
from services.errors import CrmError

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("courtage_crm")

# Créer l'app
app = FastAPI(
    title="Courtage CRM",
    description="CRM de courtage en assurance de personnes",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERREURS ====================

@app.exception_handler(CrmError)
async def crm_error_handler(request: Request, exc: CrmError):
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path}: {exc.message} ({exc.details})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Requête invalide.", "details": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


# ==================== IMPORT DES ROUTES ====================

from routes import segments, ia, reports, settings, campaigns, workflows, interactions

# Routes avec préfixe /api
app.include_router(segments.router, prefix="/api")
app.include_router(ia.router, prefix="/api")
app.include_router(reports.router, prefix="/api")
app.include_router(settings.router, prefix="/api")
app.include_router(campaigns.router, prefix="/api")
app.include_router(workflows.router, prefix="/api")
app.include_router(workflows.scenarios_router, prefix="/api")
app.include_router(interactions.router, prefix="/api")
app.include_router(interactions.email_router, prefix="/api")


# ==================== ROUTE RACINE ====================

@app.get("/")
async def root():
    return {
        "name": "Courtage CRM API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

email_receiver = None


@app.on_event("startup")
async def startup():
    global email_receiver
    logger.info("Courtage CRM démarré")

    if ENABLE_EMAIL_RECEIVER:
        from routes.deps import get_store, get_settings_cache
        from services.email_receiver import EmailReceiver

        email_receiver = EmailReceiver(get_store(), get_settings_cache())
        email_receiver.start()


@app.on_event("shutdown")
async def shutdown():
    if email_receiver:
        email_receiver.stop()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3001)
