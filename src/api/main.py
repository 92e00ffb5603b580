import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes.audio import router as audio_router
from src.api.routes.stream import router as stream_router
from src.api.routes.upload import router as upload_router
from src.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s: %(message)s",
)

app = FastAPI(
    title="Recording Ingestion API",
    description="Live recording upload, storage and transcription pipeline",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=r"https://.*\.vercel\.app|http://localhost:\d+",
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)

app.include_router(stream_router)
app.include_router(upload_router)
app.include_router(audio_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
