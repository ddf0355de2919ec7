"""Card endpoints. Every mutation is journaled by CarteService."""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gestioncartes.api.responses import StandardResponse, success
from gestioncartes.db.session import get_db, get_session_factory
from gestioncartes.middleware.context import RequestContext, require_auth
from gestioncartes.services.cartes import CarteService
from gestioncartes.services.journal_recorder import ActionRecorder

router = APIRouter(prefix="/cartes", tags=["cartes"])


class CartePayload(BaseModel):
    """Card fields, keyed like the spreadsheet columns."""

    model_config = ConfigDict(populate_by_name=True)

    lieu_enrolement: str | None = Field(default=None, alias="LIEU D'ENROLEMENT")
    site_retrait: str | None = Field(default=None, alias="SITE DE RETRAIT")
    rangement: str | None = Field(default=None, alias="RANGEMENT")
    nom: str | None = Field(default=None, alias="NOM")
    prenoms: str | None = Field(default=None, alias="PRENOMS")
    date_naissance: str | None = Field(default=None, alias="DATE DE NAISSANCE")
    lieu_naissance: str | None = Field(default=None, alias="LIEU NAISSANCE")
    contact: str | None = Field(default=None, alias="CONTACT")
    delivrance: str | None = Field(default=None, alias="DELIVRANCE")
    contact_retrait: str | None = Field(default=None, alias="CONTACT DE RETRAIT")
    date_delivrance: str | None = Field(default=None, alias="DATE DE DELIVRANCE")

    def to_document(self) -> dict[str, Any]:
        # only the keys the client actually sent
        return self.model_dump(by_alias=True, exclude_unset=True)


class CarteResponse(BaseModel):
    request_id: str
    carte: dict[str, Any]


class CarteDeletedResponse(BaseModel):
    request_id: str
    carte_id: str
    deleted: bool = True


class ImportRequest(BaseModel):
    rows: list[dict[str, Any]] = Field(..., min_length=1, max_length=50000)
    source_name: str | None = Field(default=None, max_length=255)


class ImportResponse(BaseModel):
    request_id: str
    batch_id: str
    total_processed: int
    imported: int
    duplicates: int
    errors: int
    error_details: list[str]


def _service(
    db: Annotated[AsyncSession, Depends(get_db)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> CarteService:
    return CarteService(db, ActionRecorder(session_factory))


@router.post("", response_model=StandardResponse[CarteResponse], status_code=status.HTTP_201_CREATED)
async def create_carte(
    payload: CartePayload,
    ctx: Annotated[RequestContext, Depends(require_auth)],
    service: Annotated[CarteService, Depends(_service)],
) -> StandardResponse[CarteResponse]:
    carte = await service.create(payload.to_document(), ctx.actor, ip_address=ctx.ip_address)
    return success(
        CarteResponse(request_id=ctx.request_id, carte=carte.to_snapshot()),
        request_id=ctx.request_id,
    )


@router.put("/{carte_id}", response_model=StandardResponse[CarteResponse])
async def update_carte(
    carte_id: UUID,
    payload: CartePayload,
    ctx: Annotated[RequestContext, Depends(require_auth)],
    service: Annotated[CarteService, Depends(_service)],
) -> StandardResponse[CarteResponse]:
    """Update a card; fields outside the caller's role are silently ignored."""
    carte = await service.update(
        carte_id,
        payload.to_document(),
        ctx.actor,
        ip_address=ctx.ip_address,
    )
    return success(
        CarteResponse(request_id=ctx.request_id, carte=carte.to_snapshot()),
        request_id=ctx.request_id,
    )


@router.delete("/{carte_id}", response_model=StandardResponse[CarteDeletedResponse])
async def delete_carte(
    carte_id: UUID,
    ctx: Annotated[RequestContext, Depends(require_auth)],
    service: Annotated[CarteService, Depends(_service)],
) -> StandardResponse[CarteDeletedResponse]:
    await service.delete(carte_id, ctx.actor, ip_address=ctx.ip_address)
    return success(
        CarteDeletedResponse(request_id=ctx.request_id, carte_id=str(carte_id)),
        request_id=ctx.request_id,
    )


@router.post("/import", response_model=StandardResponse[ImportResponse])
async def import_cartes(
    payload: ImportRequest,
    ctx: Annotated[RequestContext, Depends(require_auth)],
    service: Annotated[CarteService, Depends(_service)],
) -> StandardResponse[ImportResponse]:
    """
    Import parsed spreadsheet rows as one batch.

    The returned batch_id identifies the batch in /journal/imports.
    """
    result = await service.import_rows(
        payload.rows,
        ctx.actor,
        ip_address=ctx.ip_address,
        source_name=payload.source_name,
    )
    return success(
        ImportResponse(
            request_id=ctx.request_id,
            batch_id=result.batch_id,
            total_processed=result.total_processed,
            imported=result.imported,
            duplicates=result.duplicates,
            errors=result.errors,
            error_details=result.error_details,
        ),
        request_id=ctx.request_id,
    )
