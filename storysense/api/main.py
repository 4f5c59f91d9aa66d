from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storysense.api.routes.events import router as events_router
from storysense.api.routes.search import router as search_router
from storysense.api.routes.transcripts import router as transcripts_router
from storysense.config import settings
from storysense.log import setup_logging

setup_logging(settings.log_level)

app = FastAPI(
    title="StorySense Indexing API",
    description="Speaker-attributed transcript chunking, indexing and search",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
    ],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events_router)
app.include_router(search_router)
app.include_router(transcripts_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
