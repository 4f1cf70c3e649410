"""
test_catalog_engine.py — Profile catalog cache (names + section rows).
"""

from workbench.services.catalog_engine import ProfileCatalog


class TestProfileCatalog:

    def test_names(self, catalog):
        assert catalog.alum_names() == ["M-125", "M-150", "T-80"]
        assert catalog.steel_names() == ["ST-100"]

    def test_first_name_by_prefix(self, catalog):
        assert catalog.first_alum_name("M") == "M-125"
        assert catalog.first_alum_name("T") == "T-80"
        assert catalog.first_alum_name("X") is None

    def test_lookup_drops_blank_columns(self, catalog):
        """T-80 has no I_yy / phi_Mn, so those keys are absent, not NaN."""
        row = catalog.lookup("T-80")
        assert row == {"profile_name": "T-80", "I_xx": 310_000.0}

    def test_lookup_unknown_or_blank(self, catalog):
        assert catalog.lookup("M-150") is None
        assert catalog.lookup(None) is None

    def test_extra_columns_kept(self):
        cat = ProfileCatalog()
        cat.load(["M-1"], [], [{"profile_name": "M-1", "area": 512.0}])
        assert cat.lookup("M-1")["area"] == 512.0

    def test_later_row_wins(self):
        cat = ProfileCatalog()
        cat.load(["M-1"], [], [
            {"profile_name": "M-1", "I_xx": 1.0},
            {"profile_name": "M-1", "I_xx": 2.0},
        ])
        assert cat.lookup("M-1")["I_xx"] == 2.0

    def test_reload_with_nothing_empties(self, catalog):
        catalog.load()
        assert catalog.alum_names() == []
        assert catalog.lookup("M-125") is None
