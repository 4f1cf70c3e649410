"""
test_workbench_session.py — Project ownership: edits, variant changes,
frame references, wind locations, documents and collaborator calls.

The ``session`` fixture runs on the manual clock (glass window 0.4 s, wind
window 0.5 s) with the three-profile catalog from conftest and no
collaborator client.
"""

import asyncio

import httpx
import pytest

from workbench.models.document_model import (
    DguGlass,
    ManualAlumProfile,
    PredefinedAlumProfile,
    RegularCompositeFrame,
    SguGlass,
    UnknownField,
)
from workbench.services import event_bus
from workbench.services.catalog_engine import ProfileCatalog
from workbench.services.dependency_scheduler import DependencyScheduler
from workbench.services.preview_client import PreviewClient
from workbench.services.serializer import MSG_GLASS, DocumentParseError
from workbench.services.workbench_session import WorkbenchSession


def _glass(session):
    return session.project.categories[0].glass_units[0]


def _frame(session):
    return session.project.categories[0].frames[0]


def _enter_sgu(session, unit):
    for name, value in (("length", 1000), ("width", 1000), ("thickness", 6), ("wind_load", 1)):
        session.set_field(unit, name, value)


# ===========================================================================
# Class 1: Default project
# ===========================================================================

class TestDefaultProject:

    def test_predefined_profiles_from_catalog(self, session):
        profiles = session.project.alum_profiles
        assert all(isinstance(p, PredefinedAlumProfile) for p in profiles)
        assert [p.profile_name for p in profiles] == ["M-125", "T-80"]

    def test_one_steel_profile_and_one_category(self, session):
        assert len(session.project.steel_profiles) == 1
        category = session.project.categories[0]
        assert category.category_name == "Category 1"
        assert [len(category.sublist(n)) for n in ("glass_units", "frames", "connections", "anchorage")] == [1, 1, 1, 1]

    def test_empty_catalog_leaves_names_blank(self):
        session = WorkbenchSession(catalog=ProfileCatalog())
        assert [p.profile_name for p in session.project.alum_profiles] == [None, None]

    def test_new_project_replaces_and_resets(self, session):
        unit = _glass(session)
        session.set_field(unit, "length", 1000)
        old = session.project
        session.new_project()
        assert session.project is not old
        assert session.scheduler.next_due() is None
        assert session.bus.published_count(event_bus.PROJECT_REPLACED) == 1


# ===========================================================================
# Class 2: Field edits and recomputation
# ===========================================================================

class TestFieldEdits:

    def test_derived_values_written_after_window(self, session, clock):
        unit = _glass(session)
        _enter_sgu(session, unit)
        assert session.pump() == []
        clock.advance(0.4)
        outcomes = session.pump()
        assert outcomes[0].written == {"load_x_area2": 0.7, "def": 2.9}
        assert session.bus.published_count(event_bus.DERIVED_WRITTEN) == 1

    def test_user_value_not_overwritten(self, session, clock):
        unit = _glass(session)
        _enter_sgu(session, unit)
        session.set_field(unit, "def", 5)
        clock.advance(0.4)
        session.pump()
        assert unit.get("def") == 5
        assert unit.load_x_area2 == 0.7

    def test_clearing_lets_next_recompute_fill(self, session, clock):
        unit = _glass(session)
        _enter_sgu(session, unit)
        session.set_field(unit, "def", 5)
        clock.advance(0.4)
        session.pump()

        session.set_field(unit, "def", "")
        assert unit.get("def") is None
        session.set_field(unit, "wind_load", 1)
        clock.advance(0.4)
        session.pump()
        assert unit.get("def") == 2.9

    def test_unknown_thickness_published(self, session, clock):
        unit = _glass(session)
        _enter_sgu(session, unit)
        session.set_field(unit, "thickness", 7)
        clock.advance(0.4)
        outcome = session.pump()[0]
        assert not outcome.ok
        assert unit.load_x_area2 is None
        assert session.bus.published_count(event_bus.RECOMPUTE_FAILED) == 1

    def test_attribute_outside_schema_rejected(self, session):
        with pytest.raises(UnknownField):
            session.set_field(_glass(session), "thickness1", 6)

    def test_settle_waits_out_windows(self, sgu_inputs):
        session = WorkbenchSession(
            catalog=ProfileCatalog(),
            scheduler=DependencyScheduler(glass_window_s=0.01, wind_window_s=0.01),
        )
        unit = _glass(session)
        for name, value in sgu_inputs.items():
            session.set_field(unit, name, value)
        asyncio.run(session.settle())
        assert unit.get("def") == 2.9


# ===========================================================================
# Class 3: Variant changes
# ===========================================================================

class TestVariantChange:

    def test_discriminant_edit_swaps_record(self, session):
        unit = _glass(session)
        session.set_field(unit, "length", 1200)
        replacement = session.set_field(unit, "glass_type", "dgu")
        assert isinstance(replacement, DguGlass)
        assert _glass(session) is replacement
        assert replacement.length == 1200
        assert session.bus.published_count(event_bus.VARIANT_CHANGED) == 1

    def test_user_state_follows_replacement(self, session):
        unit = _glass(session)
        session.set_field(unit, "length", 1200)
        replacement = session.change_variant(unit, "lgu")
        assert session.scheduler.is_user_supplied(replacement, "length")
        assert session.scheduler.is_pending(replacement)

    def test_derived_values_start_over_after_switch(self, session, clock):
        """sgu 6 mm → def 2.9; lgu 12+12 (h ≈ 15.1 mm) is too stiff for the regression."""
        unit = _glass(session)
        _enter_sgu(session, unit)
        clock.advance(0.4)
        session.pump()
        assert unit.get("def") == 2.9

        lgu = session.change_variant(unit, "lgu")
        assert lgu.get("def") is None
        assert lgu.load_x_area2 is None

        session.set_field(lgu, "thickness1", 12)
        session.set_field(lgu, "thickness2", 12)
        clock.advance(0.4)
        session.pump()
        assert lgu.get("def") is None
        assert lgu.load_x_area2 == 0.7

    def test_user_derived_value_released_by_switch(self, session):
        unit = _glass(session)
        session.set_field(unit, "def", 5)
        replacement = session.change_variant(unit, "lgu")
        assert not session.scheduler.is_user_supplied(replacement, "def")

    def test_same_variant_is_noop(self, session):
        unit = _glass(session)
        assert session.change_variant(unit, "sgu") is unit
        assert session.bus.published_count(event_bus.VARIANT_CHANGED) == 0

    def test_frame_second_discriminant(self, session):
        frame = _frame(session)
        composite = session.set_field(frame, "mullion_type", "Aluminum + Steel")
        assert isinstance(composite, RegularCompositeFrame)
        assert composite.geometry == "regular"

    def test_profile_variant_change_publishes_profiles_changed(self, session):
        profile = session.project.alum_profiles[0]
        manual = session.set_field(profile, "profile_type", "Manual")
        assert isinstance(manual, ManualAlumProfile)
        assert manual.profile_name == "M-125"
        assert session.bus.published_count(event_bus.PROFILES_CHANGED) == 1


# ===========================================================================
# Class 4: Profiles and frame references
# ===========================================================================

class TestFrameReferences:

    def test_reference_options_split_on_t_prefix(self, session):
        session.add_alum_profile(profile_name="MP-1")
        options = session.frame_reference_options()
        assert options["mullion_profiles"] == ["M-125", "MP-1"]
        assert options["transom_profiles"] == ["T-80"]
        assert options["steel_profiles"] == []

    def test_rename_clears_dangling_reference(self, session):
        frame = _frame(session)
        session.set_field(frame, "mullion", "M-125")
        session.set_field(frame, "transom", "T-80")

        session.set_field(session.project.alum_profiles[0], "profile_name", "M-200")

        assert frame.mullion is None
        assert frame.transom == "T-80"
        assert session.bus.published_count(event_bus.REFERENCE_CLEARED) == 1

    def test_remove_profile_clears_reference(self, session):
        frame = _frame(session)
        session.set_field(frame, "transom", "T-80")
        session.remove_profile(session.project.alum_profiles[1])
        assert frame.transom is None

    def test_steel_reference(self, session):
        steel = session.project.steel_profiles[0]
        session.set_field(steel, "profile_name", "ST-1")
        composite = session.change_variant(_frame(session), "regular", "Aluminum + Steel")
        session.set_field(composite, "steel", "ST-1")
        session.remove_profile(steel)
        assert composite.steel is None

    def test_sections_from_catalog_then_project(self, session):
        session.add_alum_profile(profile_name="MP-1", area=410.0, I_xx=9.5e5)
        frame = _frame(session)
        session.set_field(frame, "mullion", "MP-1")
        session.set_field(frame, "transom", "T-80")
        sections = session.resolve_frame_sections(frame)
        assert sections["transom"] == {"profile_name": "T-80", "I_xx": 310_000.0}
        assert sections["mullion"]["I_xx"] == 9.5e5
        assert sections["mullion"]["profile_type"] == "Manual"

    def test_predefined_without_catalog_row_has_no_section(self, session):
        frame = _frame(session)
        session.set_field(frame, "mullion", "M-125")
        session.catalog.load()
        assert session.resolve_frame_sections(frame)["mullion"] is None

    def test_option_sources(self, session):
        session.load_wind_locations([("Dhaka", 65.7)])
        sources = session.option_sources()
        assert sources["alum_catalog"] == ["M-125", "M-150", "T-80"]
        assert sources["wind_locations"] == ["Dhaka"]

    def test_schema_hints_use_project_profiles(self, session):
        hints = session.schema_hints(_frame(session))
        mullion = next(h for h in hints if h.name == "mullion")
        assert mullion.options == ["M-125"]


# ===========================================================================
# Class 5: Categories and items
# ===========================================================================

class TestCategories:

    def test_add_category_numbering(self, session):
        category = session.add_category()
        assert category.category_name == "Category 2"
        assert len(category.glass_units) == 1

    def test_add_item_marks_values_user_supplied(self, session):
        category = session.project.categories[0]
        item = session.add_item(category, "glass_units", "dgu", length=1200)
        assert isinstance(item, DguGlass)
        assert category.glass_units[-1] is item
        assert session.scheduler.is_user_supplied(item, "length")
        assert session.scheduler.is_pending(item)

    def test_add_item_unknown_list(self, session):
        with pytest.raises(UnknownField):
            session.add_item(session.project.categories[0], "mullions")

    def test_remove_item(self, session):
        category = session.project.categories[0]
        unit = category.glass_units[0]
        session.set_field(unit, "length", 1000)
        session.remove_item(category, unit)
        assert category.glass_units == []
        assert not session.scheduler.is_pending(unit)

    def test_remove_foreign_item(self, session):
        with pytest.raises(ValueError):
            session.remove_item(session.project.categories[0], SguGlass())

    def test_remove_category(self, session):
        category = session.add_category("Podium")
        session.remove_category(category)
        assert [c.category_name for c in session.project.categories] == ["Category 1"]

    def test_items_found_by_identity(self, session):
        """A second blank sgu equals the first by value but is not in the project."""
        category = session.project.categories[0]
        twin = SguGlass()
        assert twin == category.glass_units[0]
        assert session.project.find_category(twin) is None
        assert session.project.find_category(category.glass_units[0]) is category


# ===========================================================================
# Class 6: Wind
# ===========================================================================

class TestWind:

    def test_default_location_applied_on_load(self, session):
        session.load_wind_locations([("Dhaka", 65.7), ("Chittagong", 80.0)])
        assert session.project.wind.location == "Dhaka"
        assert session.project.wind.wind_speed == 65.7

    def test_location_change_replaces_speed(self, session):
        session.load_wind_locations([("Dhaka", 65.7), ("Chittagong", 80.0)])
        session.set_field(session.project.wind, "wind_speed", 70)
        session.apply_wind_location("Chittagong")
        assert session.project.wind.wind_speed == 80.0

    def test_wind_derivations_after_window(self, session, clock):
        wind = session.project.wind
        session.set_field(wind, "b_length", 40)
        session.set_field(wind, "b_width", 25)
        clock.advance(0.4)
        assert session.pump() == []
        clock.advance(0.2)
        session.pump()
        assert (wind.C_pw, wind.C_pl, wind.C_ps, wind.gust_factor) == (0.8, -0.5, -0.7, 0.85)


# ===========================================================================
# Class 7: Documents
# ===========================================================================

class TestDocuments:

    def test_export_import_round_trip(self, session):
        _enter_sgu(session, _glass(session))
        text = session.export_document()
        session.import_document(text)
        assert session.export_document() == text
        assert session.bus.published_count(event_bus.PROJECT_REPLACED) == 1

    def test_import_resets_scheduler(self, session):
        session.set_field(_glass(session), "length", 1000)
        session.import_document(session.export_document())
        assert session.scheduler.next_due() is None

    def test_failed_import_keeps_project(self, session):
        project = session.project
        with pytest.raises(DocumentParseError):
            session.import_document("- not\n- a project\n")
        assert session.project is project


# ===========================================================================
# Class 8: Collaborator calls
# ===========================================================================

class TestCollaborator:

    def test_without_client(self, session):
        with pytest.raises(RuntimeError):
            asyncio.run(session.preview(_glass(session)))

    def test_incomplete_preview_is_placeholder(self, catalog):
        def unreachable(request):
            raise AssertionError("no request expected")

        async def go():
            async with PreviewClient(base_url="http://collab", transport=httpx.MockTransport(unreachable)) as client:
                session = WorkbenchSession(catalog=catalog, client=client)
                return await session.preview(_glass(session))

        result = asyncio.run(go())
        assert result.status == "placeholder"
        assert result.message == MSG_GLASS

    def test_refresh_catalog(self):
        def collaborator(request):
            routes = {
                "/get_profile_names": {"alum_profiles": ["M-90", "T-60"], "steel_profiles": []},
                "/get_profile_data": {"alum_profiles_data": [{"profile_name": "M-90", "I_xx": 8.0e5}]},
                "/get_wind_locations": {"locations": [["Dhaka", 65.7]]},
            }
            return httpx.Response(200, json=routes[request.url.path])

        async def go():
            async with PreviewClient(base_url="http://collab", transport=httpx.MockTransport(collaborator)) as client:
                session = WorkbenchSession(client=client)
                loaded = await session.refresh_catalog()
                return session, loaded

        session, loaded = asyncio.run(go())
        assert loaded
        assert session.catalog.lookup("M-90")["I_xx"] == 8.0e5
        assert session.project.wind.wind_speed == 65.7
