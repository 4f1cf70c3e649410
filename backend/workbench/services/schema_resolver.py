"""
schema_resolver.py — Which attributes an entity has, and how to present them.

Every polymorphic entity kind maps its discriminant tuple to one record
type (see ``document_model``); the record's ``ATTRIBUTES`` is the ordered
schema.  This module is a pure lookup over those tables plus the
presentation hints (label, unit, value kind, options) a form needs.

Switching a discriminant never mutates a record in place: a fresh record of
the new variant is built and only attributes valid in the new schema carry
over.
"""

import logging
import re
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Type, get_args, get_origin

from pydantic import BaseModel

from workbench.models.document_model import (
    BoxClumpAnchorage,
    Connection,
    DguGlass,
    EntityModel,
    IncludeFlags,
    IrregularAluminumFrame,
    IrregularCompositeFrame,
    LClumpAnchorage,
    LdguGlass,
    LguGlass,
    ManualAlumProfile,
    ManualSteelProfile,
    PredefinedAlumProfile,
    ProjectInfo,
    RegularAluminumFrame,
    RegularCompositeFrame,
    SguGlass,
    StickAlumProfile,
    UClumpAnchorage,
    UnknownVariant,
    WindConfig,
)

logger = logging.getLogger("workbench-schema")


# ---------------------------------------------------------------------------
# Variant tables  (discriminant tuple → record type)
# ---------------------------------------------------------------------------

VARIANTS: Dict[str, Dict[Tuple[str, ...], Type[EntityModel]]] = {
    "glass_unit": {
        ("sgu",): SguGlass,
        ("dgu",): DguGlass,
        ("lgu",): LguGlass,
        ("ldgu",): LdguGlass,
    },
    "alum_profile": {
        ("Manual",): ManualAlumProfile,
        ("Pre-defined",): PredefinedAlumProfile,
        ("Stick",): StickAlumProfile,
    },
    "steel_profile": {
        ("Manual",): ManualSteelProfile,
    },
    "frame": {
        ("regular", "Aluminum Only"): RegularAluminumFrame,
        ("regular", "Aluminum + Steel"): RegularCompositeFrame,
        ("irregular", "Aluminum Only"): IrregularAluminumFrame,
        ("irregular", "Aluminum + Steel"): IrregularCompositeFrame,
    },
    "anchorage": {
        ("Box Clump",): BoxClumpAnchorage,
        ("U Clump",): UClumpAnchorage,
        ("L Clump",): LClumpAnchorage,
    },
    # Single-schema kinds
    "connection": {(): Connection},
    "project_info": {(): ProjectInfo},
    "include": {(): IncludeFlags},
    "wind": {(): WindConfig},
}

# Discriminant attribute names per kind, in selection order
DISCRIMINANTS: Dict[str, Tuple[str, ...]] = {
    kind: next(iter(table.values())).DISCRIMINANTS for kind, table in VARIANTS.items()
}

# Attributes computed from other inputs; they belong to one variant's inputs
# and are never carried across a discriminant change.
DERIVED: Dict[str, Tuple[str, ...]] = {
    "glass_unit": ("load_x_area2", "def", "load1_x_area2", "load2_x_area2", "def1", "def2"),
    "wind": ("gust_factor", "C_pw", "C_pl", "C_ps"),
}

# Anchorage values pre-filled at creation and on clump-type change.
# Keys outside the variant's schema (front_anchor_nos, top_bp_length_N) never apply.
ANCHORAGE_DEFAULTS: Dict[str, Dict[str, float]] = {
    "Box Clump": {
        "anchor_nos": 4, "anchor_dia": 12, "embed_depth": 70,
        "C_a1": 150, "h_a": 150, "bp_thk": 5,
    },
    "U Clump": {
        "anchor_nos": 4, "anchor_dia": 12, "embed_depth": 70, "C_a1": 60,
        "thr_bolt_dia": 10, "fin_thk": 5, "fin_e": 70, "bp_thk": 6,
    },
    "L Clump": {
        "top_anchor_nos": 2, "front_anchor_nos": 2, "anchor_dia": 12, "embed_depth": 70,
        "top_C_a1": 150, "front_C_a1": 60, "h_a": 150,
        "top_bp_length_N": 250, "top_bp_width_B": 250,
        "front_bp_length_N": 250, "front_bp_width_B": 150,
        "bp_thk": 6, "thr_bolt_dia": 10, "fin_thk": 5, "fin_e": 70,
    },
}


# ---------------------------------------------------------------------------
# Labels  (trailing parenthesised part is the unit)
# ---------------------------------------------------------------------------

_LABELS: Dict[str, Dict[str, str]] = {
    "alum_profile": {
        "profile_type": "Profile Type",
        "profile_name": "Profile Name",
        "web_length": "Web Length (mm)",
        "flange_length": "Flange Length (mm)",
        "web_thk": "Web Thickness (mm)",
        "flange_thk": "Flange Thickness (mm)",
        "tor_constant": "Torsional Constant (mm⁴)",
        "area": "Area (mm²)",
        "I_xx": "Major Moment of Inertia, Ixx (mm⁴)",
        "I_yy": "Minor Moment of Inertia, Iyy (mm⁴)",
        "Y": "Extreme Fibre Distance, Y (mm)",
        "X": "Extreme Fibre Distance, X (mm)",
        "plastic_x": "Upper Region Centroid Distance, Plastic X (mm)",
        "plastic_y": "Lower Region Centroid Distance, Plastic Y (mm)",
        "F_y": "Yield Strength, Fy (MPa)",
        "Mn_yield": "Moment Capacity by Yielding, Mn (kNm)",
        "Mn_lb": "Moment Capacity by Local Buckling, Mn (kNm)",
    },
    "steel_profile": {
        "profile_type": "Profile Type",
        "profile_name": "Profile Name",
        "web_length": "Web Length (mm)",
        "flange_length": "Flange Length (mm)",
        "thk": "Thickness (mm)",
        "F_y": "Yield Strength, Fy (MPa)",
    },
    "glass_unit": {
        "glass_type": "Glass Type",
        "length": "Glass Length, L (mm)",
        "width": "Glass Width, B (mm)",
        "thickness": "Thickness (mm)",
        "thickness1": "Outer Panel Thickness (mm)",
        "thickness2": "Inner Panel Thickness (mm)",
        "thickness1_1": "1st Lite Thickness of Outer panel (mm)",
        "thickness1_2": "2nd Lite Thickness of Outer panel (mm)",
        "thickness_inner": "Interlayer Thickness (mm)",
        "chart_thickness": "Chart Thickness (mm)",
        "grade": "Glass Grade",
        "grade1": "Glass Grade",
        "grade2": "Glass Grade",
        "wind_load": "Wind Load (kPa)",
        "def_criteria": "Deflection Criteria (Default x = 60), B/x",
        "support_type": "Support Type",
        "gap": "Gap Between Panels (mm)",
        "nfl": "Non-factored Load, NFL (kPa)",
        "nfl1": "Non-factored Load of Outer Panel, NFL1 (kPa)",
        "nfl2": "Non-factored Load of Inner Panel, NFL2 (kPa)",
        "load_x_area2": "Load × Area² (kNm²)",
        "load1_x_area2": "Load × Area² (kNm²)",
        "load2_x_area2": "Load × Area² (kNm²)",
        "def": "Deflection (mm)",
        "def1": "Outer Panel Deflection (mm)",
        "def2": "Inner Panel Deflection (mm)",
    },
    "frame": {
        "geometry": "Frame Geometry",
        "mullion_type": "Mullion Type",
        "length": "Mullion Length (mm)",
        "width": "Transom Length (mm)",
        "tran_spacing": "Transom Spacing (mm)",
        "glass_thk": "Glass Thickness (mm)",
        "wind_pos": "Wind Load (+ve) (kPa)",
        "wind_neg": "Wind Load (-ve) (kPa)",
        "mullion": "Mullion Name",
        "steel": "Embedded Steel Tube",
        "transom": "Transom Name",
        "mul_mu": "Mullion Max. Moment, Mu (kNm)",
        "mul_vu": "Mullion Max. Shear, Vu (kN)",
        "mul_def": "Mullion Max. Deflection, δ (mm)",
        "tran_mu": "Transom Max. Moment, Mu (kNm)",
        "tran_vu": "Transom Max. Shear, Vu (kN)",
        "tran_def_wind": "Transom Max. Deflection (wind), δw (mm)",
        "tran_def_dead": "Transom Max. Deflection (dead), δd (mm)",
        "joint_fy": "Horizontal Joint Force, fy (kN)",
        "joint_fz": "Vertical Joint Force, fz (kN)",
        "reaction_Ry": "Horizontal Reaction, Ry (kN)",
        "reaction_Rz": "Vertical Reaction, Rz (kN)",
    },
    "connection": {
        "screw_nos": "No. of Screws, n",
        "screw_dia": "Screw Diameter, d (mm)",
        "screw_edge_dist": "Screw Edge Distance, e (mm)",
        "clip_thk": "Clip Thickness, t (mm)",
        "clip_F_y": "Clip Yield Strength, Fy (MPa)",
        "screw_F_u": "Screw Tensile Strength, Fu (MPa)",
    },
    "anchorage": {
        "clump_type": "Clump Type",
        "anchor_nos": "No. of Anchor bolt, n",
        "top_anchor_nos": "No. of Top Anchor bolt, n",
        "anchor_dia": "Diameter of Anchor bolt, da (mm)",
        "embed_depth": "Embed. Depth of Anchor, hef (mm)",
        "C_a1": "Edge Distance, Ca1 (mm)",
        "top_C_a1": "Edge Distance of Top Anchor, Ca1 (mm)",
        "front_C_a1": "Edge Distance for Front Anchor, Ca1 (mm)",
        "h_a": "Depth of Concrete Member, ha (mm)",
        "thr_bolt_dia": "Diameter of Through bolt, db (mm)",
        "fin_thk": "Thickness of Fin Plate (mm)",
        "fin_e": "Eccentricity, e (mm)",
        "front_bp_length_N": "Length of Front Base Plate, N (mm)",
        "top_bp_width_B": "Depth of Top Base Plate, H (mm)",
        "front_bp_width_B": "Width of Front Base Plate, B (mm)",
        "bp_thk": "Thickness of Base Plate, t (mm)",
    },
    "wind": {
        "location": "Location",
        "wind_speed": "Basic Wind Speed, V (m/s)",
        "b_length": "Building Length, L (m)",
        "b_width": "Building Width, B (m)",
        "b_height": "Building Height, h (m)",
        "b_floor_heights": "Floor Heights",
        "exposure_cat": "Exposure Category",
        "b_rigidity": "Building Rigidity",
        "b_freq": "Natural Frequency, n1 (Hz)",
        "damping": "Damping Ratio, β",
        "gust_factor": "Gust Factor, G",
        "C_pw": "Windward Pressure Coefficient, Cpw",
        "C_pl": "Leeward Pressure Coefficient, Cpl",
        "C_ps": "Side Wall Pressure Coefficient, Cps",
        "auto_load": "Apply Wind Load to Frames",
        "note": "Note",
    },
    "project_info": {
        "project_name": "Project Name",
        "project_location": "Project Location",
        "client_name": "Client",
        "consultant": "Consultant",
        "prepared_by": "Prepared By",
        "checked_by": "Checked By",
        "report_date": "Date",
        "revision": "Revision",
    },
    "include": {
        "wind": "Wind Analysis",
        "alum_profiles": "Aluminium Profiles",
        "steel_profiles": "Steel Profiles",
        "glass_units": "Glass Units",
        "frames": "Frames",
        "connections": "Connections",
        "anchorage": "Anchorage",
    },
}

_UNIT_RE = re.compile(r"\s*\(([^)]+)\)$")

# Attributes whose options come from a live catalog rather than the record type
CATALOG_SOURCES = ("alum_catalog", "mullion_profiles", "transom_profiles", "steel_profiles", "wind_locations")


class AttributeHint(BaseModel):
    """Presentation hint for one attribute of a resolved schema."""
    name: str
    label: str
    unit: Optional[str] = None
    value_kind: Literal["numeric", "text", "enumerated", "flag"]
    options: List[str] = []
    catalog: Optional[str] = None   # one of CATALOG_SOURCES when options are dynamic


def split_label(label: str) -> Tuple[str, Optional[str]]:
    """'Glass Length, L (mm)' → ('Glass Length, L', 'mm')."""
    match = _UNIT_RE.search(label)
    if not match:
        return label, None
    return label[:match.start()], match.group(1)


def enumerated_options(cls: Type[EntityModel], name: str) -> Optional[Tuple[str, ...]]:
    """Fixed option tuple of an enumerated attribute, None for any other kind."""
    annotation = cls.model_fields[cls.field_name(name)].annotation
    if get_origin(annotation) is Literal:
        return tuple(str(o) for o in get_args(annotation))
    return None


def _catalog_for(kind: str, discriminants: Tuple[str, ...], name: str) -> Optional[str]:
    if kind == "alum_profile" and discriminants == ("Pre-defined",) and name == "profile_name":
        return "alum_catalog"
    if kind == "frame":
        return {"mullion": "mullion_profiles", "transom": "transom_profiles", "steel": "steel_profiles"}.get(name)
    if kind == "wind" and name == "location":
        return "wind_locations"
    return None


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def _normalise(kind: str, discriminants: Sequence[Any]) -> Tuple[str, ...]:
    if kind not in VARIANTS:
        raise UnknownVariant(f"Unknown entity kind: {kind}")
    expected = len(DISCRIMINANTS[kind])
    if not discriminants and expected:
        discriminants = default_discriminants(kind)
    key = tuple(str(d) for d in discriminants)
    if len(key) != expected or key not in VARIANTS[kind]:
        raise UnknownVariant(f"Unknown {kind} variant: {', '.join(key) or '<none>'}")
    return key


def default_discriminants(kind: str) -> Tuple[str, ...]:
    """First option of every discriminant (the form's initial selection)."""
    if kind not in VARIANTS:
        raise UnknownVariant(f"Unknown entity kind: {kind}")
    return next(iter(VARIANTS[kind]))


def discriminant_options(kind: str) -> Dict[str, List[str]]:
    """Selectable values for each discriminant of ``kind``."""
    names = DISCRIMINANTS.get(kind, ())
    options: Dict[str, List[str]] = {n: [] for n in names}
    for key in VARIANTS.get(kind, {}):
        for name, value in zip(names, key):
            if value not in options[name]:
                options[name].append(value)
    return options


def variant_class(kind: str, *discriminants: Any) -> Type[EntityModel]:
    return VARIANTS[kind][_normalise(kind, discriminants)]


def resolve(kind: str, *discriminants: Any) -> List[str]:
    """Ordered attribute list for ``kind`` under ``discriminants``."""
    return list(variant_class(kind, *discriminants).ATTRIBUTES)


def hints(
    kind: str,
    *discriminants: Any,
    option_sources: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[AttributeHint]:
    """
    Presentation hints for every attribute of the resolved schema.

    ``option_sources`` supplies the live option lists of catalog-backed
    attributes, keyed by catalog name; missing sources give empty options.
    """
    key = _normalise(kind, discriminants)
    cls = VARIANTS[kind][key]
    labels = _LABELS.get(kind, {})
    out: List[AttributeHint] = []

    for name in cls.ATTRIBUTES:
        label, unit = split_label(labels.get(name, name))
        annotation = cls.model_fields[cls.field_name(name)].annotation
        fixed = enumerated_options(cls, name)
        catalog = _catalog_for(kind, key, name)
        options: List[str] = []

        if fixed is not None:
            value_kind = "enumerated"
            options = list(fixed)
        elif annotation is bool:
            value_kind = "flag"
            options = ["yes", "no"]
        elif catalog is not None:
            value_kind = "enumerated"
            options = list((option_sources or {}).get(catalog, ()))
        elif float in get_args(annotation):
            value_kind = "numeric"
        else:
            value_kind = "text"

        out.append(AttributeHint(
            name=name, label=label, unit=unit, value_kind=value_kind,
            options=options, catalog=catalog,
        ))
    return out


def default_values(kind: str, *discriminants: Any) -> Dict[str, float]:
    """Creation-time presets, filtered to the variant's schema."""
    if kind != "anchorage":
        return {}
    key = _normalise(kind, discriminants)
    schema = set(VARIANTS[kind][key].ATTRIBUTES)
    return {k: v for k, v in ANCHORAGE_DEFAULTS.get(key[0], {}).items() if k in schema}


# ---------------------------------------------------------------------------
# Construction and variant switching
# ---------------------------------------------------------------------------

def new_entity(kind: str, *discriminants: Any, **values: Any) -> EntityModel:
    """Fresh record of the resolved variant with presets applied."""
    key = _normalise(kind, discriminants)
    cls = VARIANTS[kind][key]
    record = cls()
    for name, value in default_values(kind, *key).items():
        record.set(name, value)
    for name, value in values.items():
        record.set(name, value)
    return record


def switch_variant(entity: EntityModel, *discriminants: Any) -> EntityModel:
    """
    Build the record that replaces ``entity`` after a discriminant change.

    Attributes shared by the old and new schema keep their values; all
    others are dropped, as are derived attributes, which were computed for
    the old variant's inputs.  Blank preset fields are then filled from the
    default table of the new variant.
    """
    kind = entity.KIND
    key = _normalise(kind, discriminants)
    cls = VARIANTS[kind][key]
    if type(entity) is cls:
        return entity

    record = cls()
    carried = 0
    derived = DERIVED.get(kind, ())
    for name in cls.ATTRIBUTES:
        if name in entity.ATTRIBUTES and name not in derived:
            value = entity.get(name)
            if value is not None:
                record.set(name, value)
                carried += 1
    for name, value in default_values(kind, *key).items():
        if record.is_blank(name):
            record.set(name, value)

    logger.debug(
        "Switched %s %s -> %s (%d values carried)",
        kind, "/".join(entity.discriminant_values()), "/".join(key), carried,
    )
    return record
