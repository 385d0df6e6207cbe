from fastapi import APIRouter
from .v1 import generation, nodes, workflows

api_router = APIRouter(prefix="/api", tags=["canvas"])

api_router.include_router(workflows.router, prefix="/v1", tags=["workflows"])
api_router.include_router(nodes.router, prefix="/v1", tags=["nodes"])
api_router.include_router(generation.router, prefix="/v1", tags=["generation"])


@api_router.get("/")
def read_root():
    return {"message": "CanvasAI workflow engine is running"}
