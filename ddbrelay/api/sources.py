"""
Source book listing.

Public catalog metadata from the platform config; no credential required.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ddbrelay.api.deps import RelayDep, enforce_rate_limit

router = APIRouter(prefix="/api", tags=["sources"], dependencies=[Depends(enforce_rate_limit)])


class SourceBook(BaseModel):
    id: int
    name: str
    description: str | None = None


class SourceBooksResponse(BaseModel):
    sourceBooks: list[SourceBook] = Field(default_factory=list)


@router.get("/source-books", response_model=SourceBooksResponse)
async def list_source_books(relay: RelayDep) -> SourceBooksResponse:
    """
    List every source book the platform knows about, sorted by name.

    Returns an empty list if the platform config is unavailable.
    """
    sources = await relay.registry.get_all_sources()
    return SourceBooksResponse(
        sourceBooks=[
            SourceBook(id=s.id, name=s.name, description=s.description)
            for s in sorted(sources, key=lambda s: s.name)
        ]
    )
