from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.fee_reports.router import router as fee_reports_router
from app.api.v1.fee_structures.router import router as fee_structures_router
from app.api.v1.fees.router import router as fees_router
from app.api.v1.receipts.router import router as receipts_router
from app.core.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fee Ledger")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fee_structures_router)
    app.include_router(fees_router)
    app.include_router(receipts_router)
    app.include_router(fee_reports_router)

    return app


app = create_app()
