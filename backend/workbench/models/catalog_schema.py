from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Tuple


class ProfileCatalogRow(BaseModel):
    """
    One section-property row from the profile catalog service.
    Only ``profile_name`` is guaranteed; the service adds whatever section
    properties it knows (I_xx, I_yy, phi_Mn, area, ...) as extra keys.
    """
    model_config = ConfigDict(extra="allow")

    profile_name: str = Field(..., description="Catalog key, e.g. M-125 or T-80")
    I_xx: Optional[float] = Field(None, description="Major moment of inertia [mm⁴]")
    I_yy: Optional[float] = Field(None, description="Minor moment of inertia [mm⁴]")
    phi_Mn: Optional[float] = Field(None, description="Design moment capacity [kNm]")


class ProfileNamesResponse(BaseModel):
    alum_profiles: List[str] = []
    steel_profiles: List[str] = []


class ProfileDataResponse(BaseModel):
    alum_profiles_data: List[ProfileCatalogRow] = []
    steel_profiles_data: List[ProfileCatalogRow] = []


class WindLocationsResponse(BaseModel):
    """Design wind speed per location, as ``[[name, speed_ms], ...]``."""
    locations: List[Tuple[str, float]] = []
