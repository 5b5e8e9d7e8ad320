import logging

import uvicorn
from fastapi import FastAPI

from .db import Base, engine
from .settings import settings
from .routers import progress, vocabulary, lessons
from . import models  # noqa: F401  (registers tables on Base)

logging.basicConfig(
	level=settings.log_level.upper(),
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Sprachheld API")
app.include_router(progress.router)
app.include_router(vocabulary.router)
app.include_router(lessons.router)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)


def run():
	uvicorn.run("sprachheld.main:app", host=settings.host, port=settings.port)
