"""
app/api/routers package marker.
"""

from app.api.routers.dataset_router import router as dataset_router

__all__ = [
    "dataset_router",
]
