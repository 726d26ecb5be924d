import logging

from fastapi import FastAPI
from .db import db_ok
from .settings import settings
from .routes.breakdowns import router as breakdowns_router
from .routes.documents import router as documents_router

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(
    title="Procurement Costing API",
    version="0.1.0",
    description="Financial breakdowns for purchase orders, change orders and vendor invoices."
)

app.include_router(breakdowns_router)
app.include_router(documents_router)


@app.get("/health")
def health():
    return {"ok": True, "db": db_ok()}
