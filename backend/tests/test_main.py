"""Tests for the HTTP API."""

import inspect
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import main


SAMPLE_GEDCOM = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "sample-family.ged"
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def client():
    """Test client over an empty family."""
    main.store.replace_all([], [], [])
    main.store.root_person_id = None
    return TestClient(main.app)


@pytest.fixture
def santos(client):
    """Client with the sample file uploaded."""
    with open(SAMPLE_GEDCOM, "rb") as f:
        response = client.post("/upload-gedcom", files={"file": ("sample-family.ged", f, "text/plain")})
    assert response.status_code == 200
    return client


def add_member(client, name, **fields):
    response = client.post("/members", json={"firstName": name, **fields})
    assert response.status_code == 201
    return response.json()


# ============================================================================
# Member Endpoints
# ============================================================================

class TestMemberEndpoints:
    """Tests for member CRUD over HTTP."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "memberCount": 0}

    def test_create_and_get(self, client):
        created = add_member(client, "Isko", lastName="Santos", gender="male", birthDate="1920-03-12")
        assert created["id"] == 1
        assert created["generationLevel"] == 0
        assert created["birthDate"] == "1920-03-12"

        response = client.get("/members/1")
        assert response.status_code == 200
        assert response.json()["lastName"] == "Santos"

    def test_create_requires_first_name(self, client):
        response = client.post("/members", json={"lastName": "Santos"})
        assert response.status_code == 422

    def test_list_sorted_by_first_name(self, client):
        for name in ("Pedro", "ana", "Jose"):
            add_member(client, name)
        names = [m["firstName"] for m in client.get("/members").json()]
        assert names == ["ana", "Jose", "Pedro"]

    def test_update(self, client):
        add_member(client, "Isko")
        response = client.put("/members/1", json={"occupation": "Carpenter"})
        assert response.status_code == 200
        assert response.json()["occupation"] == "Carpenter"
        assert response.json()["firstName"] == "Isko"

    def test_missing_member_is_404(self, client):
        assert client.get("/members/5").status_code == 404
        assert client.put("/members/5", json={"notes": "x"}).status_code == 404
        assert client.delete("/members/5").status_code == 404

    def test_delete(self, client):
        add_member(client, "Isko")
        assert client.delete("/members/1").status_code == 200
        assert client.get("/members").json() == []


# ============================================================================
# Relationship Endpoints
# ============================================================================

class TestRelationshipEndpoints:
    """Tests for parent-child links and marriages over HTTP."""

    def test_parent_child_updates_generations(self, client):
        add_member(client, "Isko")
        add_member(client, "Maria")
        response = client.post("/relationships/parent-child", json={"parentId": 1, "childId": 2})
        assert response.status_code == 201
        assert response.json()["relationshipType"] == "biological"
        assert client.get("/members/2").json()["generationLevel"] == 1

    def test_parent_child_errors(self, client):
        add_member(client, "Isko")
        add_member(client, "Maria")
        client.post("/relationships/parent-child", json={"parentId": 1, "childId": 2})

        duplicate = client.post("/relationships/parent-child", json={"parentId": 1, "childId": 2})
        assert duplicate.status_code == 400
        circular = client.post("/relationships/parent-child", json={"parentId": 2, "childId": 1})
        assert circular.status_code == 400
        assert "circular" in circular.json()["detail"]
        self_link = client.post("/relationships/parent-child", json={"parentId": 1, "childId": 1})
        assert self_link.status_code == 400
        missing = client.post("/relationships/parent-child", json={"parentId": 1, "childId": 9})
        assert missing.status_code == 404

    def test_update_and_delete_parent_child(self, client):
        add_member(client, "Isko")
        add_member(client, "Maria")
        client.post("/relationships/parent-child", json={"parentId": 1, "childId": 2})

        response = client.put("/relationships/parent-child/1", json={"relationshipType": "adopted"})
        assert response.json()["relationshipType"] == "adopted"
        assert client.delete("/relationships/parent-child/1").status_code == 200
        assert client.get("/relationships/parent-child").json() == []
        assert client.delete("/relationships/parent-child/1").status_code == 404

    def test_marriages(self, client):
        add_member(client, "Isko")
        add_member(client, "Ilang")
        response = client.post("/marriages", json={"spouse1Id": 1, "spouse2Id": 2, "marriageDate": "1945-01-01"})
        assert response.status_code == 201
        assert response.json()["status"] == "married"

        assert client.post("/marriages", json={"spouse1Id": 2, "spouse2Id": 1}).status_code == 400
        assert client.post("/marriages", json={"spouse1Id": 1, "spouse2Id": 1}).status_code == 400

        updated = client.put("/marriages/1", json={"status": "widowed"})
        assert updated.json()["status"] == "widowed"
        assert client.get("/marriages").json()[0]["marriageDate"] == "1945-01-01"
        assert client.delete("/marriages/1").status_code == 200
        assert client.delete("/marriages/1").status_code == 404

    def test_invalid_marriage_status(self, client):
        add_member(client, "Isko")
        add_member(client, "Ilang")
        response = client.post("/marriages", json={"spouse1Id": 1, "spouse2Id": 2, "status": "engaged"})
        assert response.status_code == 422


# ============================================================================
# Tree Endpoints
# ============================================================================

class TestTreeEndpoints:
    """Tests for hierarchy, summaries and generation maintenance."""

    def test_empty_hierarchy(self, client):
        data = client.get("/tree/hierarchy").json()
        assert data["rootCouple"] is None
        assert data["message"] == "No root couple found"

    def test_divorced_founders_root_the_tree(self, client):
        for name in ("Isko", "Ilang", "Maria"):
            add_member(client, name)
        client.post("/marriages", json={"spouse1Id": 1, "spouse2Id": 2, "status": "divorced"})
        client.post("/relationships/parent-child", json={"parentId": 1, "childId": 3})

        data = client.get("/tree/hierarchy").json()
        assert data["rootCouple"]["marriageInfo"]["status"] == "divorced"
        assert [node["member"]["firstName"] for node in data["childrenRow"]] == ["Maria"]
        assert data["totalMembers"] == 3

    def test_store_endpoints_are_blocking_functions(self):
        """Store work holds a lock, so FastAPI must run these on its threadpool."""
        for endpoint in (
            main.add_member,
            main.update_member,
            main.add_parent_child,
            main.add_marriage,
            main.get_tree_hierarchy,
            main.fix_generations,
        ):
            assert not inspect.iscoroutinefunction(endpoint)

    def test_sample_hierarchy(self, santos):
        data = santos.get("/tree/hierarchy").json()

        assert data["rootCouple"]["spouse1"]["firstName"] == "Isko"
        assert data["rootCouple"]["spouse2"]["firstName"] == "Ilang"
        assert [node["type"] for node in data["childrenRow"]] == ["couple", "individual"]
        assert data["childrenRow"][0]["spouse1"]["firstName"] == "Maria"
        assert data["childrenRow"][0]["spouse2"]["firstName"] == "Pedro"
        assert data["childrenRow"][1]["member"]["firstName"] == "Jose"

        groups = data["additionalGenerations"]
        assert [g["level"] for g in groups] == [1, 2]
        assert groups[0]["members"][0]["member"]["firstName"] == "Lita"
        ana = groups[1]["members"][0]
        assert ana["member"]["firstName"] == "Ana"
        assert [p["firstName"] for p in ana["parents"]] == ["Pedro", "Maria"]
        assert data["totalMembers"] == 7
        assert data["totalGenerations"] == 3
        assert data["rootGeneration"] == 0

    def test_generations_summary(self, santos):
        data = santos.get("/tree/generations").json()
        assert [(g["level"], g["memberCount"]) for g in data] == [(0, 2), (1, 4), (2, 1)]

    def test_stats(self, santos):
        data = santos.get("/stats").json()
        assert data["totalMembers"] == 7
        assert data["deceasedMembers"] == 1
        assert data["totalGenerations"] == 3
        assert data["marriages"] == 3
        assert data["earliestBirth"] == "1920-03-12"

    def test_families(self, santos):
        data = santos.get("/families").json()
        assert [f["status"] for f in data] == ["married", "married", "divorced"]
        assert [c["firstName"] for c in data[0]["children"]] == ["Maria", "Jose"]

    def test_lineage(self, santos):
        ancestors = santos.get("/members/6/ancestors").json()
        assert [(a["member"]["firstName"], a["distance"]) for a in ancestors] == [
            ("Pedro", 1), ("Maria", 1), ("Isko", 2), ("Ilang", 2),
        ]
        descendants = santos.get("/members/1/descendants", params={"generations": 1}).json()
        assert [d["member"]["firstName"] for d in descendants] == ["Maria", "Jose"]
        assert santos.get("/members/99/ancestors").status_code == 404

    def test_validate(self, santos):
        assert santos.get("/tree/validate").json() == {"warnings": []}

    def test_recalculate_with_root(self, santos):
        response = santos.post("/recalculate-generations", json={"rootPersonId": 6})
        assert response.status_code == 200
        data = response.json()
        assert data["generationDistribution"] == {"0": 2, "1": 4, "2": 1}
        assert data["membersByGeneration"][2]["members"] == ["Ana Cruz"]

    def test_recalculate_unknown_root(self, santos):
        response = santos.post("/recalculate-generations", json={"rootPersonId": 99})
        assert response.status_code == 404

    def test_fix_generations_without_body(self, santos):
        response = santos.post("/fix-generations")
        assert response.status_code == 200
        assert response.json()["message"] == "Generations fixed successfully!"


# ============================================================================
# Upload Endpoint
# ============================================================================

class TestUpload:
    """Tests for GEDCOM upload."""

    def test_upload_counts(self, client):
        with open(SAMPLE_GEDCOM, "rb") as f:
            response = client.post("/upload-gedcom", files={"file": ("sample-family.ged", f, "text/plain")})
        assert response.status_code == 200
        data = response.json()
        assert data["individualCount"] == 7
        assert data["parentChildCount"] == 6
        assert data["marriageCount"] == 3
        assert client.get("/health").json()["memberCount"] == 7

    def test_upload_replaces_family(self, santos):
        add_member(santos, "Extra")
        with open(SAMPLE_GEDCOM, "rb") as f:
            santos.post("/upload-gedcom", files={"file": ("sample-family.ged", f, "text/plain")})
        assert len(santos.get("/members").json()) == 7

    def test_rejects_other_file_types(self, client):
        response = client.post("/upload-gedcom", files={"file": ("family.txt", b"0 HEAD", "text/plain")})
        assert response.status_code == 400
