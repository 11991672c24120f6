from ddbrelay.api.character import router as character_router
from ddbrelay.api.content import router as content_router
from ddbrelay.api.credentials import router as credentials_router
from ddbrelay.api.health import router as health_router
from ddbrelay.api.sources import router as sources_router

__all__ = [
    "character_router",
    "content_router",
    "credentials_router",
    "health_router",
    "sources_router",
]
