from fastapi import APIRouter

from carmarket.config import settings

router = APIRouter()


@router.get("/health")
def health_check() -> dict:
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "storage_bucket": settings.storage_bucket,
    }
