from fastapi import APIRouter

router = APIRouter()


@router.get("/readiness")
async def readiness() -> dict[str, str]:
    """Readiness check."""
    return {"status": "ok"}
