"""
test_schema_resolver.py — Variant lookup, presentation hints and variant
switching.
"""

import pytest

from workbench.models.document_model import (
    BoxClumpAnchorage,
    DguGlass,
    IrregularAluminumFrame,
    LClumpAnchorage,
    SguGlass,
    UClumpAnchorage,
    UnknownVariant,
)
from workbench.services import schema_resolver


def _hint(hints, name):
    return next(h for h in hints if h.name == name)


# ===========================================================================
# Class 1: resolve
# ===========================================================================

class TestResolve:

    def test_sgu_attribute_order(self):
        attrs = schema_resolver.resolve("glass_unit", "sgu")
        assert attrs == list(SguGlass.ATTRIBUTES)
        assert attrs[:3] == ["length", "width", "thickness"]

    def test_no_discriminants_means_first_variant(self):
        assert schema_resolver.resolve("glass_unit") == schema_resolver.resolve("glass_unit", "sgu")

    def test_composite_frame_has_steel(self):
        attrs = schema_resolver.resolve("frame", "regular", "Aluminum + Steel")
        assert attrs[:3] == ["mullion", "steel", "transom"]

    def test_irregular_frame_has_forces(self):
        attrs = schema_resolver.resolve("frame", "irregular", "Aluminum Only")
        assert "steel" not in attrs
        assert attrs[-1] == "reaction_Rz"
        assert "mul_mu" in attrs

    def test_l_clump_uses_top_anchor_count(self):
        attrs = schema_resolver.resolve("anchorage", "L Clump")
        assert "top_anchor_nos" in attrs
        assert "anchor_nos" not in attrs

    def test_single_schema_kind(self):
        assert schema_resolver.resolve("connection")[0] == "screw_nos"

    def test_unknown_kind(self):
        with pytest.raises(UnknownVariant):
            schema_resolver.resolve("curtain")

    def test_unknown_variant(self):
        with pytest.raises(UnknownVariant):
            schema_resolver.resolve("glass_unit", "tgu")

    def test_partial_discriminants_rejected(self):
        with pytest.raises(UnknownVariant):
            schema_resolver.resolve("frame", "regular")

    def test_discriminant_options(self):
        assert schema_resolver.discriminant_options("frame") == {
            "geometry": ["regular", "irregular"],
            "mullion_type": ["Aluminum Only", "Aluminum + Steel"],
        }


# ===========================================================================
# Class 2: hints
# ===========================================================================

class TestHints:

    def test_label_and_unit_split(self):
        hint = _hint(schema_resolver.hints("glass_unit", "sgu"), "length")
        assert hint.label == "Glass Length, L"
        assert hint.unit == "mm"
        assert hint.value_kind == "numeric"

    def test_enumerated_options_come_from_record(self):
        hints = schema_resolver.hints("glass_unit", "sgu")
        assert _hint(hints, "grade").options == ["FT", "HS", "AN"]
        assert _hint(hints, "support_type").value_kind == "enumerated"

    def test_flag_hint(self):
        hint = _hint(schema_resolver.hints("include"), "frames")
        assert hint.value_kind == "flag"
        assert hint.options == ["yes", "no"]

    def test_text_hint_without_unit(self):
        hint = _hint(schema_resolver.hints("project_info"), "project_name")
        assert hint.value_kind == "text"
        assert hint.unit is None

    def test_catalog_backed_options(self):
        hints = schema_resolver.hints(
            "frame", "regular", "Aluminum Only",
            option_sources={"mullion_profiles": ["M-125"]},
        )
        mullion = _hint(hints, "mullion")
        assert mullion.catalog == "mullion_profiles"
        assert mullion.options == ["M-125"]
        assert _hint(hints, "transom").options == []

    def test_predefined_profile_name_uses_catalog(self):
        hint = _hint(schema_resolver.hints("alum_profile", "Pre-defined"), "profile_name")
        assert hint.catalog == "alum_catalog"
        manual = _hint(schema_resolver.hints("alum_profile", "Manual"), "profile_name")
        assert manual.catalog is None

    def test_wind_location_hint(self):
        hint = _hint(
            schema_resolver.hints("wind", option_sources={"wind_locations": ["Dhaka"]}), "location",
        )
        assert hint.options == ["Dhaka"]


# ===========================================================================
# Class 3: construction and presets
# ===========================================================================

class TestNewEntity:

    def test_l_clump_presets_filtered_to_schema(self):
        defaults = schema_resolver.default_values("anchorage", "L Clump")
        assert defaults["top_anchor_nos"] == 2
        assert "front_anchor_nos" not in defaults
        assert "top_bp_length_N" not in defaults

    def test_box_clump_presets_applied(self):
        record = schema_resolver.new_entity("anchorage", "Box Clump")
        assert isinstance(record, BoxClumpAnchorage)
        assert record.anchor_nos == 4
        assert record.h_a == 150

    def test_values_override_presets(self):
        record = schema_resolver.new_entity("anchorage", "U Clump", C_a1=90)
        assert record.C_a1 == 90

    def test_non_anchorage_has_no_presets(self):
        assert schema_resolver.default_values("glass_unit", "sgu") == {}

    def test_values_are_coerced(self):
        record = schema_resolver.new_entity("glass_unit", "dgu", length="1200")
        assert isinstance(record, DguGlass)
        assert record.length == 1200.0


# ===========================================================================
# Class 4: switch_variant
# ===========================================================================

class TestSwitchVariant:

    def test_shared_attributes_carry(self):
        sgu = schema_resolver.new_entity("glass_unit", "sgu", length=1000, width=800, thickness=6, wind_load=1.5)
        dgu = schema_resolver.switch_variant(sgu, "dgu")
        assert isinstance(dgu, DguGlass)
        assert (dgu.length, dgu.width, dgu.wind_load) == (1000, 800, 1.5)
        assert dgu.thickness1 is None

    def test_source_record_untouched(self):
        sgu = schema_resolver.new_entity("glass_unit", "sgu", thickness=6)
        schema_resolver.switch_variant(sgu, "lgu")
        assert sgu.thickness == 6

    def test_same_variant_returns_same_record(self):
        sgu = schema_resolver.new_entity("glass_unit", "sgu")
        assert schema_resolver.switch_variant(sgu, "sgu") is sgu

    def test_carried_values_win_over_presets(self):
        """Box C_a1 = 150 carries into U Clump; blank fin_thk takes the U preset 5."""
        box = schema_resolver.new_entity("anchorage", "Box Clump")
        u = schema_resolver.switch_variant(box, "U Clump")
        assert isinstance(u, UClumpAnchorage)
        assert u.C_a1 == 150
        assert u.fin_thk == 5

    def test_attributes_outside_new_schema_dropped(self):
        box = schema_resolver.new_entity("anchorage", "Box Clump", anchor_nos=6)
        l_clump = schema_resolver.switch_variant(box, "L Clump")
        assert isinstance(l_clump, LClumpAnchorage)
        assert "anchor_nos" not in l_clump.values()
        assert l_clump.top_anchor_nos == 2

    def test_frame_geometry_switch_keeps_references(self):
        frame = schema_resolver.new_entity("frame", "regular", "Aluminum Only", mullion="M-125", length=3000)
        irregular = schema_resolver.switch_variant(frame, "irregular", "Aluminum Only")
        assert isinstance(irregular, IrregularAluminumFrame)
        assert irregular.mullion == "M-125"
        assert irregular.length == 3000
        assert irregular.mul_mu is None
