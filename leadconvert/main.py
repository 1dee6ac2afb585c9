"""FastAPI application wiring for the leadconvert API."""

import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from leadconvert import monitoring
from leadconvert.agents.lead_scoring import LeadNotFound
from leadconvert.auth import SessionAuthMiddleware
from leadconvert.db import init_db
from leadconvert.routes import analytics, auth, interactions, leads, messaging, scores, webhooks
from leadconvert.scores import UserNotFound

API_PORT = int(os.getenv("API_PORT", "8000"))

monitoring.init_monitoring()

app = FastAPI(title="leadconvert API")
app.add_middleware(
    SessionAuthMiddleware,
    exempt_paths={"/health", "/auth/register", "/auth/login", "/auth/logout"},
    exempt_prefixes={"/webhooks/", "/interactions/track/", "/docs", "/openapi", "/redoc"},
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.getenv("FRONTEND_URL", "http://localhost:5000")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, leads, interactions, messaging, analytics, scores, webhooks):
    app.include_router(module.router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ())[1:]) or 'body'}: {error.get('msg')}"
        for error in errors
    )
    return JSONResponse({"message": message or "Invalid request"}, status_code=400)


@app.exception_handler(LeadNotFound)
async def lead_not_found_handler(request: Request, exc: LeadNotFound):
    return JSONResponse({"message": "Lead not found"}, status_code=404)


@app.exception_handler(UserNotFound)
async def user_not_found_handler(request: Request, exc: UserNotFound):
    return JSONResponse({"message": "User not found"}, status_code=404)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    monitoring.capture_exception(exc)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


@app.on_event("startup")
async def on_startup():
    await init_db()


@app.get("/health")
async def health_check():
    return {"status": "UP"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("leadconvert.main:app", host="0.0.0.0", port=API_PORT)
