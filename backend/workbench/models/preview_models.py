"""
Collaborator payload models for the preview / report service.

Every preview the workbench shows is either server-rendered HTML or a
placeholder message; ``PreviewResult`` is the single shape the session
receives, so callers never branch on transport details.
"""
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel


ItemType = Literal[
    "alum_profile", "steel_profile", "glass_unit", "frame", "connection", "anchorage",
]


class CalcPreviewRequest(BaseModel):
    item_type: ItemType
    payload: Dict[str, Any]


class CalcPreviewResponse(BaseModel):
    success: bool = False
    html: Optional[str] = None
    result: Optional[Dict[str, Any]] = None  # computed section properties, profiles only
    error: Optional[str] = None


class SaveManualProfileRequest(BaseModel):
    profile_type: ItemType          # the item type, e.g. "alum_profile"
    profile: Dict[str, Any]         # input payload merged with the preview result


class WindPreviewRequest(BaseModel):
    wind: Dict[str, Any]


class DocumentRequest(BaseModel):
    """Body of the report and figure-check endpoints."""
    yaml_content: str


class FigureStatus(BaseModel):
    name: str
    category: Optional[str] = None
    exists: bool = False


class FigureCheckResponse(BaseModel):
    success: bool = False
    figures: List[FigureStatus] = []
    error: Optional[str] = None


class PreviewResult(BaseModel):
    """Outcome of one preview request, as seen by the session."""
    status: Literal["ok", "placeholder", "stale"]
    entity_key: str
    request_token: int = 0
    html: Optional[str] = None
    message: Optional[str] = None   # placeholder text when status != "ok"
    result: Optional[Dict[str, Any]] = None

    model_config = {"json_schema_extra": {
        "example": {
            "status": "placeholder",
            "entity_key": "glass_unit:140237",
            "request_token": 3,
            "message": "Enter glass length and width",
        }
    }}
