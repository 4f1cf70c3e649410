"""
workbench_session.py — Single owner of the project being edited.

The session is the only component that mutates the Project.  Field edits
go through ``set_field`` so that user state and recompute triggers stay in
step; discriminant edits go through ``change_variant``, which swaps in a
fresh record of the new variant.  Profile edits publish
``profiles_changed``, and the frame-reference validator subscribed to it
clears mullion / transom / steel names that no longer resolve.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from workbench import config
from workbench.models.document_model import (
    CATEGORY_SUBLISTS,
    Category,
    EntityModel,
    Project,
    UnknownField,
)
from workbench.models.preview_models import FigureCheckResponse, PreviewResult
from workbench.services import schema_resolver, serializer
from workbench.services.catalog_engine import ProfileCatalog
from workbench.services.dependency_scheduler import DependencyScheduler, RecomputeOutcome
from workbench.services.event_bus import (
    DERIVED_WRITTEN,
    PROFILES_CHANGED,
    PROJECT_REPLACED,
    RECOMPUTE_FAILED,
    REFERENCE_CLEARED,
    VARIANT_CHANGED,
    EventBus,
)
from workbench.services.logging_config import entity_extra
from workbench.services.preview_client import PreviewClient

logger = logging.getLogger("workbench-session")

_PROFILE_KINDS = ("alum_profile", "steel_profile")
_FRAME_REFERENCES = (("mullion", "mullion_profiles"), ("transom", "transom_profiles"), ("steel", "steel_profiles"))


class WorkbenchSession:
    def __init__(
        self,
        catalog: Optional[ProfileCatalog] = None,
        client: Optional[PreviewClient] = None,
        bus: Optional[EventBus] = None,
        scheduler: Optional[DependencyScheduler] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.catalog = catalog or ProfileCatalog()
        self.client = client
        self.bus = bus or EventBus()
        self.scheduler = scheduler or DependencyScheduler(clock=clock)
        self.wind_locations: Dict[str, float] = {}
        self.bus.subscribe(PROFILES_CHANGED, self._validate_frame_references)
        self.project = self.default_project()

    # ── Project lifecycle ─────────────────────────────────────────────────────

    def default_project(self) -> Project:
        """
        Starting project: the first M* and T* catalog profiles as pre-defined
        aluminium profiles, one steel profile, and one category with one
        entry in each sub-list.
        """
        project = Project()
        for prefix in ("M", "T"):
            project.alum_profiles.append(schema_resolver.new_entity(
                "alum_profile", "Pre-defined", profile_name=self.catalog.first_alum_name(prefix),
            ))
        project.steel_profiles.append(schema_resolver.new_entity("steel_profile"))
        project.categories.append(self._new_category("Category 1"))
        if config.DEFAULT_WIND_LOCATION in self.wind_locations:
            project.wind.location = config.DEFAULT_WIND_LOCATION
            project.wind.wind_speed = self.wind_locations[config.DEFAULT_WIND_LOCATION]
        return project

    def new_project(self) -> Project:
        self._replace_project(self.default_project())
        return self.project

    def _replace_project(self, project: Project) -> None:
        self.scheduler.reset()
        self.project = project
        self.bus.publish(PROJECT_REPLACED, project=project)

    # ── Profiles ──────────────────────────────────────────────────────────────

    def add_alum_profile(self, profile_type: str = "Manual", **values: Any) -> EntityModel:
        profile = schema_resolver.new_entity("alum_profile", profile_type, **values)
        self.project.alum_profiles.append(profile)
        self.bus.publish(PROFILES_CHANGED, profile=profile)
        return profile

    def add_steel_profile(self, **values: Any) -> EntityModel:
        profile = schema_resolver.new_entity("steel_profile", **values)
        self.project.steel_profiles.append(profile)
        self.bus.publish(PROFILES_CHANGED, profile=profile)
        return profile

    def remove_profile(self, profile: EntityModel) -> None:
        owner = self._owner_list(profile)
        self._remove_identical(owner, profile)
        self.scheduler.forget(profile)
        self.bus.publish(PROFILES_CHANGED, profile=profile)

    def alum_profile_names(self) -> List[str]:
        return [p.profile_name.strip() for p in self.project.alum_profiles if p.profile_name and p.profile_name.strip()]

    def steel_profile_names(self) -> List[str]:
        return [p.profile_name.strip() for p in self.project.steel_profiles if p.profile_name and p.profile_name.strip()]

    def frame_reference_options(self) -> Dict[str, List[str]]:
        """Mullions are profiles not starting with 'T'; transoms start with 'T'."""
        alum = self.alum_profile_names()
        return {
            "mullion_profiles": [n for n in alum if not n.startswith("T")],
            "transom_profiles": [n for n in alum if n.startswith("T")],
            "steel_profiles": self.steel_profile_names(),
        }

    def option_sources(self) -> Dict[str, List[str]]:
        sources = self.frame_reference_options()
        sources["alum_catalog"] = self.catalog.alum_names()
        sources["wind_locations"] = list(self.wind_locations)
        return sources

    def _validate_frame_references(self, **_: Any) -> None:
        options = self.frame_reference_options()
        for category in self.project.categories:
            for frame in category.frames:
                for name, source in _FRAME_REFERENCES:
                    if name not in frame.ATTRIBUTES:
                        continue
                    value = frame.get(name)
                    if value is not None and value not in options[source]:
                        frame.set(name, None)
                        self.scheduler.mark_user(frame, name, None)
                        logger.info("Cleared dangling %s reference %r", name, value,
                                    extra=entity_extra("frame", id(frame)))
                        self.bus.publish(REFERENCE_CLEARED, entity=frame, field=name, value=value)

    def resolve_frame_sections(self, frame: EntityModel) -> Dict[str, Optional[Dict[str, Any]]]:
        """
        Section properties behind each profile reference of a frame: catalog
        row first, then a Manual/Stick profile defined in the project.
        """
        sections: Dict[str, Optional[Dict[str, Any]]] = {}
        for name, _ in _FRAME_REFERENCES:
            if name not in frame.ATTRIBUTES:
                continue
            sections[name] = self._section_for(frame.get(name), name == "steel")
        return sections

    def _section_for(self, profile_name: Optional[str], steel: bool) -> Optional[Dict[str, Any]]:
        if not profile_name:
            return None
        row = self.catalog.lookup(profile_name)
        if row is not None:
            return row
        profiles = self.project.steel_profiles if steel else self.project.alum_profiles
        for profile in profiles:
            if profile.profile_name == profile_name and profile.profile_type != "Pre-defined":
                return {k: v for k, v in profile.values().items() if v is not None}
        return None

    # ── Categories and items ──────────────────────────────────────────────────

    def _new_category(self, name: Optional[str]) -> Category:
        category = Category(category_name=name)
        for list_name, kind in CATEGORY_SUBLISTS:
            category.sublist(list_name).append(schema_resolver.new_entity(kind))
        return category

    def add_category(self, name: Optional[str] = None) -> Category:
        category = self._new_category(name or f"Category {len(self.project.categories) + 1}")
        self.project.categories.append(category)
        return category

    def remove_category(self, category: Category) -> None:
        self._remove_identical(self.project.categories, category)
        for list_name, _ in CATEGORY_SUBLISTS:
            for item in category.sublist(list_name):
                self.scheduler.forget(item)

    def add_item(self, category: Category, list_name: str, *discriminants: Any, **values: Any) -> EntityModel:
        sublists = dict(CATEGORY_SUBLISTS)
        if list_name not in sublists:
            raise UnknownField(list_name)
        item = schema_resolver.new_entity(sublists[list_name], *discriminants, **values)
        category.sublist(list_name).append(item)
        for name in values:
            self.scheduler.mark_user(item, name, item.get(name))
        if values:
            self.scheduler.notify(item)
        return item

    def remove_item(self, category: Category, item: EntityModel) -> None:
        for list_name, _ in CATEGORY_SUBLISTS:
            items = category.sublist(list_name)
            if any(i is item for i in items):
                self._remove_identical(items, item)
                self.scheduler.forget(item)
                return
        raise ValueError("Item does not belong to this category")

    # ── Field edits ───────────────────────────────────────────────────────────

    def set_field(self, entity: EntityModel, name: str, value: Any) -> EntityModel:
        """
        Apply one user edit.  Returns the record now holding the value: a new
        record when ``name`` is a discriminant, ``entity`` otherwise.
        """
        if name in entity.DISCRIMINANTS:
            values = dict(zip(entity.DISCRIMINANTS, entity.discriminant_values()))
            values[name] = value
            return self.change_variant(entity, *values.values())
        if name not in entity.ATTRIBUTES:
            raise UnknownField(f"{name} is not an attribute of {entity.KIND}/{'/'.join(entity.discriminant_values())}")

        entity.set(name, value)
        self.scheduler.mark_user(entity, name, entity.get(name))
        self.scheduler.notify(entity, name)
        if entity.KIND in _PROFILE_KINDS and name == "profile_name":
            self.bus.publish(PROFILES_CHANGED, profile=entity)
        return entity

    def change_variant(self, entity: EntityModel, *discriminants: Any) -> EntityModel:
        replacement = schema_resolver.switch_variant(entity, *discriminants)
        if replacement is entity:
            return entity

        owner = self._owner_list(entity)
        index = next(i for i, e in enumerate(owner) if e is entity)
        owner[index] = replacement
        self.scheduler.transfer(entity, replacement)
        self.scheduler.notify(replacement)

        logger.info(
            "Variant changed to %s", "/".join(replacement.discriminant_values()),
            extra=entity_extra(entity.KIND, id(replacement)),
        )
        self.bus.publish(VARIANT_CHANGED, old=entity, new=replacement)
        if entity.KIND in _PROFILE_KINDS:
            self.bus.publish(PROFILES_CHANGED, profile=replacement)
        return replacement

    def schema_hints(self, entity: EntityModel) -> List[schema_resolver.AttributeHint]:
        return schema_resolver.hints(entity.KIND, *entity.discriminant_values(), option_sources=self.option_sources())

    # ── Wind ──────────────────────────────────────────────────────────────────

    def load_wind_locations(self, locations: Sequence[Tuple[str, float]]) -> None:
        self.wind_locations = {name: speed for name, speed in locations}
        wind = self.project.wind
        if wind.location is None and config.DEFAULT_WIND_LOCATION in self.wind_locations:
            self.apply_wind_location(config.DEFAULT_WIND_LOCATION)

    def apply_wind_location(self, location: str) -> None:
        """Select a location; its design wind speed replaces the current one."""
        wind = self.project.wind
        self.set_field(wind, "location", location)
        if location in self.wind_locations:
            self.set_field(wind, "wind_speed", self.wind_locations[location])

    # ── Recompute ─────────────────────────────────────────────────────────────

    def _publish_outcomes(self, outcomes: List[RecomputeOutcome]) -> List[RecomputeOutcome]:
        for outcome in outcomes:
            if outcome.error is not None:
                self.bus.publish(RECOMPUTE_FAILED, entity=outcome.entity, error=outcome.error)
            elif outcome.written:
                self.bus.publish(DERIVED_WRITTEN, entity=outcome.entity, written=outcome.written)
        return outcomes

    def pump(self, now: Optional[float] = None) -> List[RecomputeOutcome]:
        """Run every recomputation whose quiescence window has elapsed."""
        return self._publish_outcomes(self.scheduler.run_due(now))

    async def settle(self) -> List[RecomputeOutcome]:
        """Wait out every pending window and apply the recomputations."""
        return self._publish_outcomes(await self.scheduler.drain())

    # ── Documents ─────────────────────────────────────────────────────────────

    def export_document(self) -> str:
        return serializer.to_document(self.project)

    def import_document(self, text: str) -> Project:
        """
        Replace the project with the parsed document.  On DocumentParseError
        the current project is left untouched.
        """
        project = serializer.from_document(text)
        self._replace_project(project)
        unresolved = [
            frame.get(name)
            for category in project.categories
            for frame in category.frames
            for name, section in self.resolve_frame_sections(frame).items()
            if section is None and frame.get(name)
        ]
        if unresolved:
            logger.info("Imported frames reference profiles without section data: %s", sorted(set(unresolved)))
        return project

    # ── Collaborator ──────────────────────────────────────────────────────────

    def _require_client(self) -> PreviewClient:
        if self.client is None:
            raise RuntimeError("No collaborator client configured")
        return self.client

    async def refresh_catalog(self) -> bool:
        client = self._require_client()
        loaded = await self.catalog.refresh(client)
        self.load_wind_locations(await client.get_wind_locations())
        return loaded

    async def preview(self, entity: EntityModel) -> PreviewResult:
        client = self._require_client()
        category = self.project.find_category(entity)
        key = f"{entity.KIND}:{id(entity)}"
        return await client.calc_preview(
            key, entity.KIND,
            lambda: serializer.build_preview_request(entity.KIND, entity, category, self.catalog),
        )

    async def preview_wind(self) -> PreviewResult:
        client = self._require_client()
        wind = self.project.wind
        return await client.wind_preview(lambda: serializer.build_wind_payload(wind))

    async def check_figures(self) -> FigureCheckResponse:
        return await self._require_client().check_figures(self.export_document())

    async def generate_report(self, summary: bool = False) -> Optional[bytes]:
        return await self._require_client().generate_report(self.export_document(), summary=summary)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _owner_list(self, entity: EntityModel) -> List[EntityModel]:
        candidates = [self.project.alum_profiles, self.project.steel_profiles]
        for category in self.project.categories:
            candidates.extend(category.sublist(name) for name, _ in CATEGORY_SUBLISTS)
        for items in candidates:
            if any(e is entity for e in items):
                return items
        raise ValueError(f"{entity.KIND} record is not part of the project")

    @staticmethod
    def _remove_identical(items: List[Any], target: Any) -> None:
        for index, item in enumerate(items):
            if item is target:
                del items[index]
                return
        raise ValueError("Record is not part of the project")
