# golden_glimpses/routers/health.py
import time
from datetime import datetime, timezone
from fastapi import APIRouter

router = APIRouter(tags=["health"])

_STARTED = time.monotonic()

@router.get("/health")
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED, 3),
    }

@router.get("/")
def root():
    return {
        "message": "Golden Glimpses Time Capsule API",
        "version": "1.0.0",
        "endpoints": {
            "auth": "/api/auth",
            "capsules": "/api/capsules",
            "media": "/api/media",
            "users": "/api/users",
            "health": "/health",
        },
    }
