import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from chatter_bonus.db import engine, Base

from chatter_bonus.errors import (
    BonusEngineError,
    ConcurrentProgressConflict,
    InvalidRuleConfiguration,
    PersistenceFailure,
    RuleInactive,
    RuleLocked,
    RuleNotFound,
    WindowResolutionFailure,
    WorkerNotFound,
)

from chatter_bonus.models.bonus_rule import BonusRule
from chatter_bonus.models.bonus_award import BonusAward
from chatter_bonus.models.bonus_progress import BonusProgress
from chatter_bonus.models.earnings_event import EarningsEvent
from chatter_bonus.models.shift import Shift
from chatter_bonus.models.worker import Worker

from chatter_bonus.routes.bonus_rules import router as bonus_rules_router
from chatter_bonus.routes.bonus_engine import router as bonus_engine_router
from chatter_bonus.routes.bonus_awards import router as bonus_awards_router
from chatter_bonus.routes.bonus_progress import router as bonus_progress_router
from chatter_bonus.routes.workers import router as workers_router
from chatter_bonus.routes.earnings import router as earnings_router

app = FastAPI(title="Chatter Bonus Engine")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "https://localhost:3000",
        "http://127.0.0.1:3000",
        "https://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


ERROR_STATUS = [
    (RuleNotFound, 404),
    (WorkerNotFound, 404),
    (RuleLocked, 409),
    (ConcurrentProgressConflict, 409),
    (InvalidRuleConfiguration, 400),
    (RuleInactive, 400),
    (WindowResolutionFailure, 400),
    (PersistenceFailure, 503),
]


@app.exception_handler(BonusEngineError)
def handle_bonus_engine_error(request: Request, exc: BonusEngineError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, **exc.as_dict()})


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


app.include_router(bonus_rules_router)
app.include_router(bonus_engine_router)
app.include_router(bonus_awards_router)
app.include_router(bonus_progress_router)
app.include_router(workers_router)
app.include_router(earnings_router)


@app.get("/")
def read_root():
    return {"message": "Chatter Bonus Engine is running"}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL") or "INFO")
    uvicorn.run(app, host="127.0.0.1", port=8001, reload=True)
