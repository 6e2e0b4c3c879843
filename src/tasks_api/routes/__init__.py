"""HTTP routes."""

from tasks_api.routes.health import router as health_router
from tasks_api.routes.tasks import router as tasks_router


__all__ = ["health_router", "tasks_router"]
