from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rentdesk.config import settings
from rentdesk.db import Base, engine
from rentdesk.errors import register_error_handlers
from rentdesk.logging_setup import setup_logging
from rentdesk.middleware import RequestIdMiddleware
from rentdesk.routers import bookings, avizo, receipts

setup_logging(settings)

app = FastAPI(title="Rentdesk API", version="0.1.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(bookings.router)
app.include_router(avizo.router)
app.include_router(receipts.router)

@app.get("/healthz")
def healthz():
    return {"ok": True, "env": settings.APP_ENV}
