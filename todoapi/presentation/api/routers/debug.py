from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....core.container import ApplicationContainer
from ....core.dependencies import get_container

router = APIRouter(prefix="/debug", tags=["debug"])


@router.get("/vars")
def debug_vars(container: ApplicationContainer = Depends(get_container)) -> Dict[str, Any]:
    snapshot = container.metrics.snapshot()
    snapshot["rate_limit_exceeded_total"] = container.rate_limiter.exceeded_total
    snapshot["rate_limit_current_clients"] = container.rate_limiter.current_clients
    snapshot["background_tasks_in_flight"] = container.background.in_flight
    return snapshot
