"""Document, derivation and schema routes."""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from workbench.models.document_model import Project, UnknownVariant
from workbench.services import schema_resolver, serializer
from workbench.services.physics_engine import PhysicsEngine, UnknownThickness

router = APIRouter(prefix="/api", tags=["Workbench"])
logger = logging.getLogger("workbench-api")

_ENGINE = PhysicsEngine()


class ImportRequest(BaseModel):
    document: str


class GlassDeriveRequest(BaseModel):
    glass_type: str
    values: Dict[str, Any] = {}


class WindDeriveRequest(BaseModel):
    values: Dict[str, Any] = {}


@router.post("/document/export", response_class=PlainTextResponse)
async def export_document(project: Project):
    """Project JSON → YAML document text."""
    return serializer.to_document(project)


@router.post("/document/import")
async def import_document(body: ImportRequest):
    """YAML (or JSON) document text → project JSON."""
    try:
        project = serializer.from_document(body.document)
    except serializer.DocumentParseError as e:
        logger.info(f"Document rejected: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    return project.model_dump(by_alias=True)


@router.post("/derive/glass")
async def derive_glass(body: GlassDeriveRequest):
    try:
        return _ENGINE.derive_glass_unit(body.glass_type, body.values)
    except UnknownThickness as e:
        raise HTTPException(status_code=422, detail=f"No minimum thickness for nominal {e.nominal} mm")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/derive/wind")
async def derive_wind(body: WindDeriveRequest):
    return _ENGINE.derive_wind(body.values)


@router.get("/schema/{entity_kind}")
async def get_schema(
    entity_kind: str,
    request: Request,
    discriminant: Optional[List[str]] = Query(None),
):
    """Attribute list and presentation hints for one entity variant."""
    discriminants = discriminant or []
    session = getattr(request.app.state, "session", None)
    sources = session.option_sources() if session is not None else None
    try:
        resolved = schema_resolver.variant_class(entity_kind, *discriminants)
        hints = schema_resolver.hints(entity_kind, *discriminants, option_sources=sources)
    except UnknownVariant as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "entity_kind": entity_kind,
        "discriminants": dict(zip(resolved.DISCRIMINANTS, resolved().discriminant_values())),
        "discriminant_options": schema_resolver.discriminant_options(entity_kind),
        "attributes": [h.model_dump() for h in hints],
    }
