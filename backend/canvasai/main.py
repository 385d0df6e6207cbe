from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import api_router
from .config import ExecutionConfig, GenerationConfig


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Report which generation providers are usable before serving requests.
    """
    print("🚀 Starting CanvasAI workflow engine...")
    if not GenerationConfig.FAL_KEY:
        print("⚠️  FAL_KEY is not set; fal.ai image and video nodes will fail")
    if not GenerationConfig.GEMINI_API_KEY:
        print("⚠️  GEMINI_API_KEY is not set; gemini-2.5-flash image nodes will fail")
    if GenerationConfig.SIMULATE_3D:
        print("ℹ️  3D generation is simulated")
    if not ExecutionConfig.persistence_enabled():
        print("ℹ️  Supabase not configured; execution history is disabled")
    print("✅ CanvasAI ready")

    yield

    print("🛑 CanvasAI shutting down")


app = FastAPI(
    title="CanvasAI",
    description="Runs node-based AI generation workflows (text, image, video and 3D) built in the CanvasAI editor.",
    lifespan=lifespan,
)

# Editor dev servers are matched by regex; no fixed origin list
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=ExecutionConfig.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(api_router)
