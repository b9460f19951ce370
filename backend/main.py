import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from db.session import engine
from db.base import Base

from models.prtimes_companies import PRTimesCompany  # noqa: F401
from models.prtimes_categories import PRTimesCategory  # noqa: F401
from models.prtimes_uploads import PRTimesUpload  # noqa: F401

# --------------------------------------------------
# LOGGING
# --------------------------------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# --------------------------------------------------
# APP
# --------------------------------------------------
app = FastAPI(
    title="PR TIMES Admin API",
    version="1.0.0",
    swagger_ui_parameters={
        "displayRequestDuration": True,
    },
)


# --------------------------------------------------
# DB INIT
# --------------------------------------------------
def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        conn.execute(
            text(
                """
                CREATE INDEX IF NOT EXISTS ix_prtimes_companies_batch_category1
                ON prtimes_companies (batch_id, press_release_category1)
                """
            )
        )
        conn.execute(
            text(
                """
                CREATE INDEX IF NOT EXISTS ix_prtimes_companies_industry_capital
                ON prtimes_companies (industry, capital_amount_numeric)
                """
            )
        )


@app.on_event("startup")
def _init_db():
    try:
        init_db()
    except Exception:
        logger.exception("DB init failed")


# --------------------------------------------------
# CORS
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.options("/{path:path}")
def preflight(path: str, request: Request):
    return Response(status_code=204)


# --------------------------------------------------
# ROUTERS
# --------------------------------------------------
from routers.prtimes import router as prtimes_router  # noqa: E402

app.include_router(prtimes_router)


# --------------------------------------------------
# HEALTH CHECK
# --------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/")
def root():
    return {"status": "ok"}
