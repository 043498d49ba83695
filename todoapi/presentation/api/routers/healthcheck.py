from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....core.config import Settings
from ....core.dependencies import get_settings

router = APIRouter(prefix="/v1", tags=["healthcheck"])


@router.get("/healthcheck")
def healthcheck(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "available",
        "system_info": {
            "environment": settings.env,
            "version": settings.version,
        },
    }
