from cardbinder.api.collection import router as collection_router
from cardbinder.api.health import router as health_router

__all__ = [
    "collection_router",
    "health_router",
]
