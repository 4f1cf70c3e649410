"""
serializer.py — Project ⇄ YAML document, and collaborator request payloads.

Document layout
---------------
Top-level sections in fixed order::

    project_info:      mapping   (blank line after)
    include:           mapping   (blank line after)
    wind:              mapping   (blank line after)
    alum_profiles:     list
    steel_profiles:    list
    categories:        list  → glass_units / frames / connections / anchorage

Every record emits all of its keys, discriminants first.  Lists always
carry at least one entry (``- {}`` for an empty list).  Scalars:

    number   shortest form, integral floats as integers
    flag     yes / no
    blank    empty value (``key:``)
    text     plain when it reloads unchanged; single-quoted when it holds
             characters outside [A-Za-z0-9.\\s] or exceeds the length
             threshold; ``|-`` literal block when it holds a line break or
             ": "; double-quoted when neither of the above reloads exactly.

Import parses with ``yaml.safe_load`` (JSON as a fallback) and hydrates the
model through the schema resolver: discriminants first, then the remaining
schema keys.  Unknown keys are ignored; enumerated values outside the
option list keep the default.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from workbench import config
from workbench.models.document_model import (
    CATEGORY_SUBLISTS,
    Category,
    EntityModel,
    Project,
    UnknownField,
    UnknownVariant,
)
from workbench.services import schema_resolver

logger = logging.getLogger("workbench-serializer")


class DocumentParseError(ValueError):
    """The document could not be parsed or does not describe a project."""


class PayloadIncomplete(ValueError):
    """Required preview inputs are missing; ``message`` is the placeholder text."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


TOP_LEVEL_MAPPINGS = ("project_info", "include", "wind")
TOP_LEVEL_LISTS = (("alum_profiles", "alum_profile"), ("steel_profiles", "steel_profile"))

_NEEDS_QUOTES = re.compile(r"[^a-zA-Z0-9.\s]")


# ---------------------------------------------------------------------------
# Project → plain data
# ---------------------------------------------------------------------------

def entity_to_data(entity: EntityModel) -> Dict[str, Any]:
    return entity.values()


def category_to_data(category: Category) -> Dict[str, Any]:
    data: Dict[str, Any] = {"category_name": category.category_name}
    for list_name, _ in CATEGORY_SUBLISTS:
        data[list_name] = [entity_to_data(e) for e in category.sublist(list_name)]
    return data


def project_to_data(project: Project) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for name in TOP_LEVEL_MAPPINGS:
        data[name] = entity_to_data(getattr(project, name))
    for list_name, _ in TOP_LEVEL_LISTS:
        data[list_name] = [entity_to_data(e) for e in getattr(project, list_name)]
    data["categories"] = [category_to_data(c) for c in project.categories]
    return data


# ---------------------------------------------------------------------------
# Scalar formatting
# ---------------------------------------------------------------------------

def format_number(value: float) -> str:
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def _reloads(rendered: str, value: str) -> bool:
    try:
        return yaml.safe_load(f"k: {rendered}") == {"k": value}
    except yaml.YAMLError:
        return False


def _literal_block(value: str, pad: str) -> str:
    return "|-\n" + "\n".join(f"{pad}{line}" if line else "" for line in value.split("\n"))


def _double_quoted(value: str) -> str:
    rendered = json.dumps(value, ensure_ascii=False)
    if _reloads(rendered, value):
        return rendered
    return json.dumps(value)


def format_string(value: str, level: int) -> str:
    """Render a text scalar for a key at nesting ``level``."""
    if "\n" in value or ": " in value:
        if _reloads(_literal_block(value, config.DOCUMENT_INDENT), value):
            return _literal_block(value, config.DOCUMENT_INDENT * (level + 1))
        return _double_quoted(value)

    if len(value) > config.QUOTE_LENGTH_THRESHOLD or _NEEDS_QUOTES.search(value) or not _reloads(value, value):
        quoted = "'" + value.replace("'", "''") + "'"
        if _reloads(quoted, value):
            return quoted
        return _double_quoted(value)
    return value


def format_scalar(value: Any, level: int) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (int, float)):
        return format_number(value)
    return format_string(str(value), level)


# ---------------------------------------------------------------------------
# Plain data → text
# ---------------------------------------------------------------------------

def _emit_mapping(data: Mapping[str, Any], level: int) -> List[str]:
    pad = config.DOCUMENT_INDENT * level
    lines: List[str] = []
    for key, value in data.items():
        if isinstance(value, list):
            lines.append(f"{pad}{key}:")
            lines.extend(_emit_list(value, level))
        elif isinstance(value, dict):
            if value:
                lines.append(f"{pad}{key}:")
                lines.extend(_emit_mapping(value, level + 1))
            else:
                lines.append(f"{pad}{key}: {{}}")
            if level == 0:
                lines.append("")
        else:
            rendered = format_scalar(value, level)
            lines.append(f"{pad}{key}: {rendered}" if rendered else f"{pad}{key}:")
    return lines


def _emit_list(items: List[Any], level: int) -> List[str]:
    pad = config.DOCUMENT_INDENT * level
    lines: List[str] = []
    if not items:
        return [f"{pad}- {{}}"]
    for item in items:
        if isinstance(item, dict) and item:
            body = _emit_mapping(item, level + 1)
            # First key rides on the dash line
            lines.append(f"{pad}- {body[0].lstrip()}")
            lines.extend(body[1:])
        elif isinstance(item, dict) or item is None:
            lines.append(f"{pad}- {{}}")
        else:
            lines.append(f"{pad}- {format_scalar(item, level + 1)}")
    return lines


def data_to_text(data: Mapping[str, Any]) -> str:
    return "\n".join(_emit_mapping(data, 0)).rstrip("\n") + "\n"


def to_document(project: Project) -> str:
    """Serialize ``project`` to the YAML document text."""
    text = data_to_text(project_to_data(project))
    logger.debug("Exported document: %d categories, %d bytes", len(project.categories), len(text))
    return text


# ---------------------------------------------------------------------------
# Text → Project
# ---------------------------------------------------------------------------

def parse_document(text: str) -> Dict[str, Any]:
    """YAML first, JSON as a fallback; the root must be a mapping."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as yaml_exc:
        try:
            data = json.loads(text)
        except ValueError:
            raise DocumentParseError(f"Invalid document: {yaml_exc}") from yaml_exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DocumentParseError(f"Document root must be a mapping, got {type(data).__name__}")
    return data


def _as_mapping(raw: Any, where: str) -> Mapping[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise DocumentParseError(f"{where}: expected a mapping, got {type(raw).__name__}")
    return raw


def _as_list(raw: Any, where: str) -> List[Any]:
    """A missing or empty list hydrates as one default entry."""
    if raw is None or raw == []:
        return [{}]
    if not isinstance(raw, list):
        raise DocumentParseError(f"{where}: expected a list, got {type(raw).__name__}")
    return raw


def hydrate_entity(kind: str, raw: Any, where: Optional[str] = None) -> EntityModel:
    """Build one record: discriminants first, then the schema attributes."""
    where = where or kind
    data = _as_mapping(raw, where)

    discriminants = []
    defaults = schema_resolver.default_discriminants(kind)
    for name, default in zip(schema_resolver.DISCRIMINANTS[kind], defaults):
        value = data.get(name)
        discriminants.append(default if value in (None, "") else str(value))
    try:
        record = schema_resolver.new_entity(kind, *discriminants)
    except UnknownVariant:
        logger.warning("%s: unknown variant %s, using %s", where, discriminants, defaults)
        record = schema_resolver.new_entity(kind, *defaults)

    cls = type(record)
    for name in cls.ATTRIBUTES:
        if name not in data:
            continue
        value = data[name]
        if value in (None, "") and isinstance(record.get(name), bool):
            # blank flag keeps its default
            continue
        options = schema_resolver.enumerated_options(cls, name)
        if options is not None and str(value) not in options:
            logger.info("%s.%s: %r is not an option, keeping %r", where, name, value, record.get(name))
            continue
        try:
            record.set(name, str(value) if options is not None else value)
        except (ValidationError, UnknownField) as exc:
            raise DocumentParseError(f"{where}.{name}: invalid value {value!r}") from exc
    return record


def hydrate_category(raw: Any, where: str) -> Category:
    data = _as_mapping(raw, where)
    category = Category()
    try:
        category.category_name = data.get("category_name")
    except ValidationError as exc:
        raise DocumentParseError(f"{where}.category_name: invalid value") from exc
    for list_name, kind in CATEGORY_SUBLISTS:
        items = _as_list(data.get(list_name), f"{where}.{list_name}")
        category.sublist(list_name).extend(
            hydrate_entity(kind, item, f"{where}.{list_name}[{i}]") for i, item in enumerate(items)
        )
    return category


def hydrate_project(data: Mapping[str, Any]) -> Project:
    project = Project(
        project_info=hydrate_entity("project_info", data.get("project_info")),
        include=hydrate_entity("include", data.get("include")),
        wind=hydrate_entity("wind", data.get("wind")),
    )
    for list_name, kind in TOP_LEVEL_LISTS:
        items = _as_list(data.get(list_name), list_name)
        getattr(project, list_name).extend(
            hydrate_entity(kind, item, f"{list_name}[{i}]") for i, item in enumerate(items)
        )
    for i, raw in enumerate(_as_list(data.get("categories"), "categories")):
        project.categories.append(hydrate_category(raw, f"categories[{i}]"))
    return project


def from_document(text: str) -> Project:
    """Parse document text into a new Project; raises DocumentParseError."""
    project = hydrate_project(parse_document(text))
    logger.debug("Imported document: %d categories", len(project.categories))
    return project


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------

MSG_SELECT_PROFILE = "Enter or select a profile"
MSG_PROFILE_NOT_FOUND = "Profile data not found"
MSG_STICK_PROFILE = "Enter all dimensions and material properties"
MSG_MANUAL_PROFILE = "Enter all profile properties"
MSG_STEEL_PROFILE = "Enter all dimensions"
MSG_GLASS = "Enter glass length and width"
MSG_FRAME = "Enter all frame parameters"
MSG_CONNECTION = "Enter all screw parameters"
MSG_ANCHORAGE = "Enter all anchor parameters"
MSG_WIND = "Insufficient inputs"

STICK_REQUIRED = ("web_length", "flange_length", "web_thk", "flange_thk", "F_y")
MANUAL_REQUIRED = STICK_REQUIRED + ("Y", "X", "I_xx", "I_yy", "area", "plastic_x", "plastic_y")
STEEL_REQUIRED = ("web_length", "flange_length", "thk")
WIND_REQUIRED = ("b_length", "b_width", "location", "b_floor_heights")

# Plies that make up the total glass thickness of each unit type
_GLASS_PLIES: Dict[str, tuple] = {
    "sgu": ("thickness",),
    "dgu": ("thickness1", "thickness2"),
    "lgu": ("thickness1", "thickness2"),
    "ldgu": ("thickness1_1", "thickness1_2", "thickness2"),
}


def wire_value(value: Any) -> Any:
    """Form-style value for the collaborator: blank as "", flags as yes/no."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def wire_values(entity: EntityModel) -> Dict[str, Any]:
    return {k: wire_value(v) for k, v in entity.values().items()}


def _missing(entity: EntityModel, names) -> List[str]:
    return [n for n in names if n in entity.ATTRIBUTES and entity.is_blank(n)]


def glass_total_thickness(unit: EntityModel) -> float:
    total = 0.0
    for name in _GLASS_PLIES.get(getattr(unit, "glass_type", ""), ()):
        total += unit.get(name) or 0.0
    return total


def sibling_glass_thickness(category: Optional[Category]) -> float:
    """Thickest glass unit of the category (sum of plies), 0 when none."""
    if category is None:
        return 0
    return wire_value(max((glass_total_thickness(g) for g in category.glass_units), default=0.0))


def _first_frame(category: Category) -> Dict[str, Any]:
    return wire_values(category.frames[0]) if category.frames else {}


def build_preview_request(
    item_type: str,
    entity: EntityModel,
    category: Optional[Category] = None,
    catalog=None,
) -> Dict[str, Any]:
    """
    Build the ``/calc_preview`` payload for one item.

    Raises
    ------
    PayloadIncomplete
        Required inputs are blank; the message is the placeholder to show.
    """
    if item_type == "alum_profile":
        profile_type = entity.profile_type
        if entity.is_blank("profile_name"):
            raise PayloadIncomplete(MSG_SELECT_PROFILE)
        if profile_type == "Pre-defined":
            row = catalog.lookup(entity.profile_name) if catalog is not None else None
            if row is None:
                raise PayloadIncomplete(MSG_PROFILE_NOT_FOUND)
            return row
        required, message = (STICK_REQUIRED, MSG_STICK_PROFILE) if profile_type == "Stick" \
            else (MANUAL_REQUIRED, MSG_MANUAL_PROFILE)
        if _missing(entity, required):
            raise PayloadIncomplete(message)
        return wire_values(entity)

    if item_type == "steel_profile":
        if _missing(entity, STEEL_REQUIRED):
            raise PayloadIncomplete(MSG_STEEL_PROFILE)
        return wire_values(entity)

    if item_type == "glass_unit":
        if _missing(entity, ("length", "width")):
            raise PayloadIncomplete(MSG_GLASS)
        return wire_values(entity)

    if item_type == "frame":
        if _missing(entity, ("width", "length")):
            raise PayloadIncomplete(MSG_FRAME)
        return {**wire_values(entity), "glass_thickness": sibling_glass_thickness(category)}

    if item_type == "connection":
        if _missing(entity, ("screw_nos", "screw_dia")) or category is None:
            raise PayloadIncomplete(MSG_CONNECTION)
        return {
            **wire_values(entity),
            "frame": _first_frame(category),
            "glass_thickness": sibling_glass_thickness(category),
        }

    if item_type == "anchorage":
        if _missing(entity, ("anchor_dia", "embed_depth")) or category is None:
            raise PayloadIncomplete(MSG_ANCHORAGE)
        return {
            **wire_values(entity),
            "frame": _first_frame(category),
            "glass_thickness": sibling_glass_thickness(category),
        }

    raise ValueError(f"Unknown preview item type: {item_type}")


def build_wind_payload(wind: EntityModel) -> Dict[str, Any]:
    if _missing(wind, WIND_REQUIRED):
        raise PayloadIncomplete(MSG_WIND)
    return wire_values(wind)
