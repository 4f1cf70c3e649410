"""
test_document_routes.py — HTTP surface: document export/import, local
derivations, schema hints and request tagging.

The client is created without entering the lifespan, so no collaborator
refresh is attempted and schema hints carry no catalog options.
"""

import pytest
from fastapi.testclient import TestClient

from workbench.main import app
from workbench.models.document_model import UClumpAnchorage


@pytest.fixture(scope="module")
def client():
    return TestClient(app)


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "active"

    def test_request_id_echoed(self, client):
        response = client.post("/api/derive/wind", json={"values": {}}, headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
        assert "X-Process-Time" in response.headers


class TestDocumentRoutes:

    def test_export_then_import(self, client):
        project = {
            "wind": {"b_length": 40, "b_width": 25},
            "categories": [{
                "category_name": "East",
                "glass_units": [{"glass_type": "dgu", "length": 1200, "thickness1": 6}],
            }],
        }
        exported = client.post("/api/document/export", json=project)
        assert exported.status_code == 200
        assert exported.text.startswith("project_info:")

        imported = client.post("/api/document/import", json={"document": exported.text})
        assert imported.status_code == 200
        data = imported.json()
        unit = data["categories"][0]["glass_units"][0]
        assert unit["glass_type"] == "dgu"
        assert unit["length"] == 1200
        assert data["wind"]["b_length"] == 40
        # empty lists come back with one default entry
        assert len(data["categories"][0]["frames"]) == 1
        assert len(data["alum_profiles"]) == 1

    def test_import_uses_document_keys(self, client):
        imported = client.post("/api/document/import", json={"document": "categories:\n- glass_units:\n  - def: 3.1\n"})
        assert imported.json()["categories"][0]["glass_units"][0]["def"] == 3.1

    def test_export_rejects_unknown_variant(self, client):
        project = {"categories": [{"glass_units": [{"glass_type": "tgu"}]}]}
        assert client.post("/api/document/export", json=project).status_code == 422

    def test_import_rejects_non_mapping(self, client):
        response = client.post("/api/document/import", json={"document": "- a\n- b\n"})
        assert response.status_code == 422


class TestDeriveRoutes:

    def test_glass(self, client):
        response = client.post("/api/derive/glass", json={
            "glass_type": "sgu",
            "values": {"length": 1000, "width": 1000, "thickness": 6, "wind_load": 1, "support_type": "Four Edges"},
        })
        assert response.status_code == 200
        assert response.json()["results"] == {"load_x_area2": 0.7, "def": 2.9}

    def test_glass_unknown_thickness(self, client):
        response = client.post("/api/derive/glass", json={"glass_type": "sgu", "values": {"thickness": 7}})
        assert response.status_code == 422
        assert "7" in response.json()["detail"]

    def test_glass_unknown_type(self, client):
        response = client.post("/api/derive/glass", json={"glass_type": "tgu", "values": {}})
        assert response.status_code == 422

    def test_wind(self, client):
        response = client.post("/api/derive/wind", json={"values": {"b_length": 10, "b_width": 40}})
        assert response.json()["results"]["C_pl"] == -0.2

    def test_wind_flexible_low_frequency(self, client):
        response = client.post("/api/derive/wind", json={"values": {
            "b_length": 30, "b_width": 20, "b_height": 50, "wind_speed": 40,
            "b_rigidity": "Flexible", "b_freq": 0.0001,
        }})
        assert response.status_code == 200
        assert "gust_factor" not in response.json()["results"]


class TestSchemaRoute:

    def test_single_discriminant(self, client):
        response = client.get("/api/schema/anchorage", params={"discriminant": "U Clump"})
        body = response.json()
        assert body["discriminants"] == {"clump_type": "U Clump"}
        assert [a["name"] for a in body["attributes"]] == list(UClumpAnchorage.ATTRIBUTES)

    def test_two_discriminants(self, client):
        response = client.get(
            "/api/schema/frame",
            params=[("discriminant", "irregular"), ("discriminant", "Aluminum + Steel")],
        )
        names = [a["name"] for a in response.json()["attributes"]]
        assert "steel" in names
        assert "mul_mu" in names

    def test_defaults_when_no_discriminant(self, client):
        body = client.get("/api/schema/glass_unit").json()
        assert body["discriminants"] == {"glass_type": "sgu"}
        assert body["discriminant_options"]["glass_type"] == ["sgu", "dgu", "lgu", "ldgu"]

    def test_unknown_kind(self, client):
        assert client.get("/api/schema/curtain").status_code == 404
