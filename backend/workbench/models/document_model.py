"""
Workbench document model — the in-memory project tree.

    Project
      ├── project_info   (ProjectInfo)
      ├── include        (IncludeFlags)
      ├── wind           (WindConfig)
      ├── alum_profiles  [ManualAlumProfile | PredefinedAlumProfile | StickAlumProfile]
      ├── steel_profiles [ManualSteelProfile]
      └── categories     [Category]
            ├── glass_units  [SguGlass | DguGlass | LguGlass | LdguGlass]
            ├── frames       [Regular/Irregular × Aluminum/Composite frame]
            ├── connections  [Connection]
            └── anchorage    [BoxClumpAnchorage | UClumpAnchorage | LClumpAnchorage]

Every polymorphic entity is a tagged variant: one record type per
discriminant combination, so a record can only ever hold the attributes of
its own schema.  ``ATTRIBUTES`` on each record lists its schema in document
order (discriminants excluded); attribute names are the document keys, which
differ from the Python field name only for ``def`` (a Python keyword).

Attribute values:
  numeric  Optional[float]; form text is coerced, "" is blank (None)
  text     Optional[str];  "" is blank, the ``<br>`` marker becomes a newline
  enum     one value out of a fixed option tuple
  flag     bool, written as yes/no in the document
"""
import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union, get_args

from pydantic import BaseModel, BeforeValidator, ConfigDict, Discriminator, Field, Tag


class UnknownVariant(ValueError):
    """Raised when a discriminant value does not name a known schema."""


class UnknownField(KeyError):
    """Raised when an attribute is not part of an entity's current schema."""


# ---------------------------------------------------------------------------
# Value kinds
# ---------------------------------------------------------------------------

LINE_BREAK_MARKER = "<br>"


def _coerce_number(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("flag value given for a numeric attribute")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return value


def _coerce_text(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, str):
        if value == "":
            return None
        return value.replace(LINE_BREAK_MARKER, "\n")
    return value


def _coerce_flag(value: Any) -> Any:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in ("yes", "true", "1", "on")
    return bool(value)


Numeric = Annotated[Optional[float], BeforeValidator(_coerce_number)]
Text = Annotated[Optional[str], BeforeValidator(_coerce_text)]
Flag = Annotated[bool, BeforeValidator(_coerce_flag)]

GlassType = Literal["sgu", "dgu", "lgu", "ldgu"]
GlassGrade = Literal["FT", "HS", "AN"]
SupportType = Literal["Four Edges", "Three Edges", "Two Edges", "One Edge", "Point Fixed"]
AlumProfileType = Literal["Manual", "Pre-defined", "Stick"]
FrameGeometry = Literal["regular", "irregular"]
MullionType = Literal["Aluminum Only", "Aluminum + Steel"]
ClumpType = Literal["Box Clump", "U Clump", "L Clump"]
ExposureCategory = Literal["A", "B", "C", "D"]
BuildingRigidity = Literal["Rigid", "Flexible"]

GLASS_TYPES: Tuple[str, ...] = get_args(GlassType)
GLASS_GRADES: Tuple[str, ...] = get_args(GlassGrade)
SUPPORT_TYPES: Tuple[str, ...] = get_args(SupportType)
ALUM_PROFILE_TYPES: Tuple[str, ...] = get_args(AlumProfileType)
FRAME_GEOMETRIES: Tuple[str, ...] = get_args(FrameGeometry)
MULLION_TYPES: Tuple[str, ...] = get_args(MullionType)
CLUMP_TYPES: Tuple[str, ...] = get_args(ClumpType)
EXPOSURE_CATEGORIES: Tuple[str, ...] = get_args(ExposureCategory)
RIGIDITY_CLASSES: Tuple[str, ...] = get_args(BuildingRigidity)


# ---------------------------------------------------------------------------
# Base record
# ---------------------------------------------------------------------------

class EntityModel(BaseModel):
    """Common behaviour for every record in the tree."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore", populate_by_name=True)

    KIND: ClassVar[str] = ""
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ()
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def field_name(cls, name: str) -> str:
        """Map a document key to the Python field name."""
        for field_name, info in cls.model_fields.items():
            if (info.alias or field_name) == name:
                return field_name
        raise UnknownField(name)

    @classmethod
    def document_keys(cls) -> Tuple[str, ...]:
        """Discriminants first, then the schema attributes."""
        return cls.DISCRIMINANTS + cls.ATTRIBUTES

    def discriminant_values(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, name) for name in self.DISCRIMINANTS)

    def get(self, name: str) -> Any:
        return getattr(self, self.field_name(name))

    def set(self, name: str, value: Any) -> None:
        if name in self.DISCRIMINANTS:
            raise UnknownField(f"{name} is a discriminant; change the variant instead")
        setattr(self, self.field_name(name), value)

    def values(self) -> Dict[str, Any]:
        """Document-ordered mapping of every key to its value."""
        return {name: self.get(name) for name in self.document_keys()}

    def is_blank(self, name: str) -> bool:
        return self.get(name) is None


# ---------------------------------------------------------------------------
# Project-level sections
# ---------------------------------------------------------------------------

class ProjectInfo(EntityModel):
    KIND: ClassVar[str] = "project_info"
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "project_name", "project_location", "client_name", "consultant",
        "prepared_by", "checked_by", "report_date", "revision",
    )

    project_name: Text = None
    project_location: Text = None
    client_name: Text = None
    consultant: Text = None
    prepared_by: Text = None
    checked_by: Text = None
    report_date: Text = None
    revision: Text = None


class IncludeFlags(EntityModel):
    """Report sections to include."""

    KIND: ClassVar[str] = "include"
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "wind", "alum_profiles", "steel_profiles", "glass_units",
        "frames", "connections", "anchorage",
    )

    wind: Flag = True
    alum_profiles: Flag = True
    steel_profiles: Flag = True
    glass_units: Flag = True
    frames: Flag = True
    connections: Flag = True
    anchorage: Flag = True


class WindConfig(EntityModel):
    """Building geometry and wind climate; derives gust factor and Cp values."""

    KIND: ClassVar[str] = "wind"
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "location", "wind_speed", "b_length", "b_width", "b_height",
        "b_floor_heights", "exposure_cat", "b_rigidity", "b_freq", "damping",
        "gust_factor", "C_pw", "C_pl", "C_ps", "auto_load", "note",
    )

    location: Text = None
    wind_speed: Numeric = None
    b_length: Numeric = None
    b_width: Numeric = None
    b_height: Numeric = None
    b_floor_heights: Text = None
    exposure_cat: ExposureCategory = "B"
    b_rigidity: BuildingRigidity = "Rigid"
    b_freq: Numeric = None
    damping: Numeric = None
    gust_factor: Numeric = None
    C_pw: Numeric = None
    C_pl: Numeric = None
    C_ps: Numeric = None
    auto_load: Flag = False
    note: Text = None


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

class ManualAlumProfile(EntityModel):
    KIND: ClassVar[str] = "alum_profile"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("profile_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "profile_name", "web_length", "flange_length", "web_thk", "flange_thk",
        "tor_constant", "area", "I_xx", "I_yy", "Y", "X", "plastic_x",
        "plastic_y", "F_y", "Mn_yield", "Mn_lb",
    )

    profile_type: Literal["Manual"] = "Manual"
    profile_name: Text = None
    web_length: Numeric = None
    flange_length: Numeric = None
    web_thk: Numeric = None
    flange_thk: Numeric = None
    tor_constant: Numeric = None
    area: Numeric = None
    I_xx: Numeric = None
    I_yy: Numeric = None
    Y: Numeric = None
    X: Numeric = None
    plastic_x: Numeric = None
    plastic_y: Numeric = None
    F_y: Numeric = None
    Mn_yield: Numeric = None
    Mn_lb: Numeric = None


class PredefinedAlumProfile(EntityModel):
    """Catalog profile: section properties come from the profile catalog."""

    KIND: ClassVar[str] = "alum_profile"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("profile_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = ("profile_name",)

    profile_type: Literal["Pre-defined"] = "Pre-defined"
    profile_name: Text = None


class StickAlumProfile(EntityModel):
    KIND: ClassVar[str] = "alum_profile"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("profile_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "profile_name", "web_length", "flange_length", "web_thk", "flange_thk", "F_y",
    )

    profile_type: Literal["Stick"] = "Stick"
    profile_name: Text = None
    web_length: Numeric = None
    flange_length: Numeric = None
    web_thk: Numeric = None
    flange_thk: Numeric = None
    F_y: Numeric = None


class ManualSteelProfile(EntityModel):
    KIND: ClassVar[str] = "steel_profile"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("profile_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "profile_name", "web_length", "flange_length", "thk", "F_y",
    )

    profile_type: Literal["Manual"] = "Manual"
    profile_name: Text = None
    web_length: Numeric = None
    flange_length: Numeric = None
    thk: Numeric = None
    F_y: Numeric = None


# ---------------------------------------------------------------------------
# Glass units
# ---------------------------------------------------------------------------

class SguGlass(EntityModel):
    """Single glazing unit (one monolithic lite)."""

    KIND: ClassVar[str] = "glass_unit"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("glass_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "length", "width", "thickness", "grade", "support_type", "wind_load",
        "def_criteria", "nfl", "load_x_area2", "def",
    )

    glass_type: Literal["sgu"] = "sgu"
    length: Numeric = None
    width: Numeric = None
    thickness: Numeric = None
    grade: GlassGrade = "FT"
    support_type: SupportType = "Four Edges"
    wind_load: Numeric = None
    def_criteria: Numeric = None
    nfl: Numeric = None
    load_x_area2: Numeric = None
    deflection: Numeric = Field(None, alias="def")


class DguGlass(EntityModel):
    """Double glazing unit: two monolithic lites across an air gap."""

    KIND: ClassVar[str] = "glass_unit"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("glass_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "length", "width", "thickness1", "gap", "thickness2", "grade1", "grade2",
        "support_type", "wind_load", "def_criteria", "nfl1", "nfl2",
        "load1_x_area2", "load2_x_area2", "def1", "def2",
    )

    glass_type: Literal["dgu"] = "dgu"
    length: Numeric = None
    width: Numeric = None
    thickness1: Numeric = None
    gap: Numeric = None
    thickness2: Numeric = None
    grade1: GlassGrade = "FT"
    grade2: GlassGrade = "FT"
    support_type: SupportType = "Four Edges"
    wind_load: Numeric = None
    def_criteria: Numeric = None
    nfl1: Numeric = None
    nfl2: Numeric = None
    load1_x_area2: Numeric = None
    load2_x_area2: Numeric = None
    def1: Numeric = None
    def2: Numeric = None


class LguGlass(EntityModel):
    """Laminated glazing unit: two plies bonded by an interlayer."""

    KIND: ClassVar[str] = "glass_unit"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("glass_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "length", "width", "thickness1", "thickness_inner", "thickness2",
        "chart_thickness", "grade", "support_type", "wind_load", "def_criteria",
        "nfl", "load_x_area2", "def",
    )

    glass_type: Literal["lgu"] = "lgu"
    length: Numeric = None
    width: Numeric = None
    thickness1: Numeric = None
    thickness_inner: Numeric = None
    thickness2: Numeric = None
    chart_thickness: Numeric = None
    grade: GlassGrade = "FT"
    support_type: SupportType = "Four Edges"
    wind_load: Numeric = None
    def_criteria: Numeric = None
    nfl: Numeric = None
    load_x_area2: Numeric = None
    deflection: Numeric = Field(None, alias="def")


class LdguGlass(EntityModel):
    """Laminated double glazing: laminated outer lite, monolithic inner lite."""

    KIND: ClassVar[str] = "glass_unit"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("glass_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "length", "width", "thickness1_1", "thickness_inner", "thickness1_2",
        "chart_thickness", "gap", "thickness2", "grade1", "grade2",
        "support_type", "wind_load", "def_criteria", "nfl1", "nfl2",
        "load1_x_area2", "load2_x_area2", "def1", "def2",
    )

    glass_type: Literal["ldgu"] = "ldgu"
    length: Numeric = None
    width: Numeric = None
    thickness1_1: Numeric = None
    thickness_inner: Numeric = None
    thickness1_2: Numeric = None
    chart_thickness: Numeric = None
    gap: Numeric = None
    thickness2: Numeric = None
    grade1: GlassGrade = "FT"
    grade2: GlassGrade = "FT"
    support_type: SupportType = "Four Edges"
    wind_load: Numeric = None
    def_criteria: Numeric = None
    nfl1: Numeric = None
    nfl2: Numeric = None
    load1_x_area2: Numeric = None
    load2_x_area2: Numeric = None
    def1: Numeric = None
    def2: Numeric = None


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

_FRAME_BASE = ("length", "width", "tran_spacing", "glass_thk", "wind_pos", "wind_neg")
_FRAME_IRREGULAR = (
    "mul_mu", "mul_vu", "mul_def",
    "tran_mu", "tran_vu", "tran_def_wind", "tran_def_dead",
    "joint_fy", "joint_fz", "reaction_Ry", "reaction_Rz",
)


class RegularAluminumFrame(EntityModel):
    KIND: ClassVar[str] = "frame"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("geometry", "mullion_type")
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = ("mullion", "transom") + _FRAME_BASE

    geometry: Literal["regular"] = "regular"
    mullion_type: Literal["Aluminum Only"] = "Aluminum Only"
    mullion: Text = None
    transom: Text = None
    length: Numeric = None
    width: Numeric = None
    tran_spacing: Numeric = None
    glass_thk: Numeric = None
    wind_pos: Numeric = None
    wind_neg: Numeric = None


class RegularCompositeFrame(RegularAluminumFrame):
    """Aluminium mullion with an embedded steel tube."""

    ATTRIBUTES: ClassVar[Tuple[str, ...]] = ("mullion", "steel", "transom") + _FRAME_BASE

    mullion_type: Literal["Aluminum + Steel"] = "Aluminum + Steel"
    steel: Text = None


class _IrregularForces(EntityModel):
    """Analysis results entered by hand for irregular frames."""

    mul_mu: Numeric = None
    mul_vu: Numeric = None
    mul_def: Numeric = None
    tran_mu: Numeric = None
    tran_vu: Numeric = None
    tran_def_wind: Numeric = None
    tran_def_dead: Numeric = None
    joint_fy: Numeric = None
    joint_fz: Numeric = None
    reaction_Ry: Numeric = None
    reaction_Rz: Numeric = None


class IrregularAluminumFrame(RegularAluminumFrame, _IrregularForces):
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = RegularAluminumFrame.ATTRIBUTES + _FRAME_IRREGULAR

    geometry: Literal["irregular"] = "irregular"


class IrregularCompositeFrame(RegularCompositeFrame, _IrregularForces):
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = RegularCompositeFrame.ATTRIBUTES + _FRAME_IRREGULAR

    geometry: Literal["irregular"] = "irregular"


# ---------------------------------------------------------------------------
# Connections and anchorage
# ---------------------------------------------------------------------------

class Connection(EntityModel):
    """Screwed mullion/transom clip connection."""

    KIND: ClassVar[str] = "connection"
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "screw_nos", "screw_dia", "screw_edge_dist", "clip_thk", "clip_F_y", "screw_F_u",
    )

    screw_nos: Numeric = None
    screw_dia: Numeric = None
    screw_edge_dist: Numeric = None
    clip_thk: Numeric = None
    clip_F_y: Numeric = None
    screw_F_u: Numeric = None


class BoxClumpAnchorage(EntityModel):
    KIND: ClassVar[str] = "anchorage"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("clump_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "bp_thk", "anchor_nos", "anchor_dia", "embed_depth", "C_a1", "h_a",
    )

    clump_type: Literal["Box Clump"] = "Box Clump"
    bp_thk: Numeric = None
    anchor_nos: Numeric = None
    anchor_dia: Numeric = None
    embed_depth: Numeric = None
    C_a1: Numeric = None
    h_a: Numeric = None


class UClumpAnchorage(EntityModel):
    KIND: ClassVar[str] = "anchorage"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("clump_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "bp_thk", "fin_thk", "fin_e", "anchor_nos", "anchor_dia", "embed_depth",
        "C_a1", "thr_bolt_dia",
    )

    clump_type: Literal["U Clump"] = "U Clump"
    bp_thk: Numeric = None
    fin_thk: Numeric = None
    fin_e: Numeric = None
    anchor_nos: Numeric = None
    anchor_dia: Numeric = None
    embed_depth: Numeric = None
    C_a1: Numeric = None
    thr_bolt_dia: Numeric = None


class LClumpAnchorage(EntityModel):
    KIND: ClassVar[str] = "anchorage"
    DISCRIMINANTS: ClassVar[Tuple[str, ...]] = ("clump_type",)
    ATTRIBUTES: ClassVar[Tuple[str, ...]] = (
        "front_bp_length_N", "front_bp_width_B", "top_bp_width_B", "bp_thk",
        "fin_thk", "fin_e", "top_anchor_nos", "anchor_dia", "embed_depth",
        "front_C_a1", "top_C_a1", "h_a", "thr_bolt_dia",
    )

    clump_type: Literal["L Clump"] = "L Clump"
    front_bp_length_N: Numeric = None
    front_bp_width_B: Numeric = None
    top_bp_width_B: Numeric = None
    bp_thk: Numeric = None
    fin_thk: Numeric = None
    fin_e: Numeric = None
    top_anchor_nos: Numeric = None
    anchor_dia: Numeric = None
    embed_depth: Numeric = None
    front_C_a1: Numeric = None
    top_C_a1: Numeric = None
    h_a: Numeric = None
    thr_bolt_dia: Numeric = None


# ---------------------------------------------------------------------------
# Tagged unions
# ---------------------------------------------------------------------------

def _tag_reader(*fields: str):
    """Discriminator callable that works on raw dicts and on record instances."""
    def read(value: Any) -> Optional[str]:
        if isinstance(value, dict):
            parts = [value.get(f) for f in fields]
        else:
            parts = [getattr(value, f, None) for f in fields]
        if any(p is None for p in parts):
            return None
        return "|".join(str(p) for p in parts)
    return read


AlumProfile = Annotated[
    Union[
        Annotated[ManualAlumProfile, Tag("Manual")],
        Annotated[PredefinedAlumProfile, Tag("Pre-defined")],
        Annotated[StickAlumProfile, Tag("Stick")],
    ],
    Discriminator(_tag_reader("profile_type")),
]

SteelProfile = Annotated[
    Union[Annotated[ManualSteelProfile, Tag("Manual")]],
    Discriminator(_tag_reader("profile_type")),
]

GlassUnit = Annotated[
    Union[
        Annotated[SguGlass, Tag("sgu")],
        Annotated[DguGlass, Tag("dgu")],
        Annotated[LguGlass, Tag("lgu")],
        Annotated[LdguGlass, Tag("ldgu")],
    ],
    Discriminator(_tag_reader("glass_type")),
]

Frame = Annotated[
    Union[
        Annotated[RegularAluminumFrame, Tag("regular|Aluminum Only")],
        Annotated[RegularCompositeFrame, Tag("regular|Aluminum + Steel")],
        Annotated[IrregularAluminumFrame, Tag("irregular|Aluminum Only")],
        Annotated[IrregularCompositeFrame, Tag("irregular|Aluminum + Steel")],
    ],
    Discriminator(_tag_reader("geometry", "mullion_type")),
]

Anchorage = Annotated[
    Union[
        Annotated[BoxClumpAnchorage, Tag("Box Clump")],
        Annotated[UClumpAnchorage, Tag("U Clump")],
        Annotated[LClumpAnchorage, Tag("L Clump")],
    ],
    Discriminator(_tag_reader("clump_type")),
]


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

# Category sub-lists in document order, with the entity kind each one holds.
CATEGORY_SUBLISTS: Tuple[Tuple[str, str], ...] = (
    ("glass_units", "glass_unit"),
    ("frames", "frame"),
    ("connections", "connection"),
    ("anchorage", "anchorage"),
)


class Category(BaseModel):
    """Named grouping of glazing, framing and fixing items."""

    model_config = ConfigDict(validate_assignment=True)

    category_name: Text = None
    glass_units: List[GlassUnit] = Field(default_factory=list)
    frames: List[Frame] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    anchorage: List[Anchorage] = Field(default_factory=list)

    def sublist(self, name: str) -> List[Any]:
        if name not in dict(CATEGORY_SUBLISTS):
            raise UnknownField(name)
        return getattr(self, name)


class Project(BaseModel):
    """Root aggregate; owns every other record."""

    model_config = ConfigDict(validate_assignment=True)

    project_info: ProjectInfo = Field(default_factory=ProjectInfo)
    include: IncludeFlags = Field(default_factory=IncludeFlags)
    wind: WindConfig = Field(default_factory=WindConfig)
    alum_profiles: List[AlumProfile] = Field(default_factory=list)
    steel_profiles: List[SteelProfile] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)

    def iter_entities(self):
        """Yield every non-root record, depth first in document order."""
        yield self.project_info
        yield self.include
        yield self.wind
        yield from self.alum_profiles
        yield from self.steel_profiles
        for category in self.categories:
            for list_name, _ in CATEGORY_SUBLISTS:
                yield from category.sublist(list_name)

    def find_category(self, entity: EntityModel) -> Optional[Category]:
        """Return the category that owns ``entity`` (identity match)."""
        for category in self.categories:
            for list_name, _ in CATEGORY_SUBLISTS:
                if any(item is entity for item in category.sublist(list_name)):
                    return category
        return None
