from fastapi import APIRouter, Depends
import datetime as dt

from legalrelay.deps import get_provider
from legalrelay.provider import LLMProvider

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health(provider: LLMProvider = Depends(get_provider)):
    return {
        "status": "OK",
        "message": "Legal AI Backend is running",
        "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        "openaiConfigured": provider.configured,
    }
