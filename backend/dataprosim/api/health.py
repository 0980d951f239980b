"""Health check route."""
from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness probe, no dependencies touched."""
    return {"status": "healthy", "service": "dataprosim"}
