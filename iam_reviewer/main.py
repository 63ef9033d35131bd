import sys
from typing import Any

import fastapi
import uvicorn

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from iam_reviewer.queue import configure_review_handler, shutdown_queue
from iam_reviewer.services.review_processor import ReviewProcessor
from iam_reviewer.webhook import router as webhook_router


app = FastAPI(title="IAM Wildcard Reviewer")

app.include_router(webhook_router, prefix="/github", tags=["webhook"])


@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "pong"


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "The IAM wildcard reviewer is ready to expand permissions on your pull requests.",
        "environment": {
            "python version": sys.version,
            "fastapi version": fastapi.__version__,
            "uvicorn version": uvicorn.__version__,
        },
    }


@app.on_event("startup")
async def _configure_queue_worker() -> None:
    configure_review_handler(ReviewProcessor())


@app.on_event("shutdown")
async def _shutdown_queue_worker() -> None:
    await shutdown_queue()
