from portfolio_journey.config import settings

from conftest import ENTRIES, PHASES


def _ids(store, collection):
    return sorted(d["id"] for d in store.docs(collection))


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "Portfolio Journey API"
    assert client.get("/api/v1/health").json()["status"] == "ok"


# ============================================
# Public
# ============================================

def test_list_public_journeys_with_progress(client):
    res = client.get("/api/v1/journeys")

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "success"
    [journey] = body["journeys"]
    assert journey["id"] == "aws"
    assert journey["totalPhases"] == 3
    assert journey["completedPhases"] == 1
    assert journey["overallProgress"] == 33


def test_journey_detail_uses_live_counts(client):
    res = client.get("/api/v1/journeys/aws")

    assert res.status_code == 200
    phases = res.json()["phases"]
    assert [p["id"] for p in phases] == ["phase-foundations", "phase-core", "phase-advanced"]
    assert phases[0]["totalModules"] == 3
    assert phases[0]["modulesCompleted"] == 2
    assert phases[0]["progress"] == 67
    # the private draft is not counted on the public site
    assert phases[1]["totalModules"] == 2
    assert phases[2]["totalModules"] == 0


def test_private_journey_is_not_found(client):
    res = client.get("/api/v1/journeys/hidden")

    assert res.status_code == 404
    assert res.json() == {"status": "error", "message": "Journey 'hidden' not found"}


def test_view_drill_down(client):
    res = client.get("/api/v1/journeys/aws/view", params={"phase": "phase-foundations", "focusArea": "Linux"})

    assert res.status_code == 200
    view = res.json()["view"]
    assert view["mode"] == "focus_area_entries"
    assert view["selectedPhase"]["phase"]["id"] == "phase-foundations"
    assert [e["id"] for e in view["entries"]["completed"]] == ["entry-shell", "entry-permissions"]
    assert view["entries"]["inProgress"] == []
    assert view["query"] == {"phase": "phase-foundations", "focusArea": "Linux"}


def test_view_phase_overview(client):
    view = client.get("/api/v1/journeys/aws/view", params={"phase": "phase-core"}).json()["view"]

    assert view["mode"] == "phase_overview"
    assert [c["name"] for c in view["focusAreas"]] == ["Compute", "Storage"]
    assert view["focusAreas"][1]["stats"]["total"] == 0


def test_view_focus_area_without_phase_falls_back_to_all_phases(client):
    view = client.get("/api/v1/journeys/aws/view", params={"focusArea": "Linux"}).json()["view"]
    assert view["mode"] == "all_phases"
    assert view["query"] == {}


def test_view_unknown_selectors(client):
    assert client.get("/api/v1/journeys/aws/view", params={"phase": "nope"}).status_code == 404
    res = client.get("/api/v1/journeys/aws/view", params={"phase": "phase-core", "focusArea": "Linux"})
    assert res.status_code == 404


# ============================================
# Admin
# ============================================

def test_admin_lists_private_journeys(client):
    journeys = client.get("/api/v1/admin/journeys").json()["journeys"]
    assert [j["id"] for j in journeys] == ["aws", "hidden"]
    assert journeys[1]["overallProgress"] == 0


def test_admin_journey_detail_counts_private_entries(client):
    body = client.get("/api/v1/admin/journeys/aws").json()

    core = body["phases"][1]
    assert core["totalModules"] == 3
    assert core["progress"] == 33
    assert body["entryTypes"]["lab"] == 6


def test_admin_phase_and_entry_listing(client):
    phases = client.get("/api/v1/admin/journeys/aws/phases").json()["phases"]
    assert phases[1]["totalModules"] == 3

    body = client.get("/api/v1/admin/phases/phase-core/entries").json()
    assert body["count"] == 3
    assert [e["id"] for e in body["entries"]] == ["entry-ec2", "entry-lambda", "entry-draft"]


def test_create_entry(client, seeded_store):
    payload = {
        "phaseId": "phase-advanced",
        "domain": "Security",
        "title": "IAM Policies",
        "type": "project",
        "status": "In Progress",
        "description": "Least privilege policies",
        "techStack": ["IAM", "Terraform"],
        "order": 1,
        "isPublic": True,
    }

    res = client.post("/api/v1/admin/entries", json=payload)

    assert res.status_code == 201
    assert res.json()["entry"]["id"] == "entry-iam-policies"
    assert "entry-iam-policies" in _ids(seeded_store, ENTRIES)


def test_create_entry_validation_error(client):
    res = client.post("/api/v1/admin/entries", json={"phaseId": "phase-core", "title": "Missing fields"})

    assert res.status_code == 422
    body = res.json()
    assert body["status"] == "error"
    assert ["body", "domain"] in [err["loc"] for err in body["errors"]]


def test_create_duplicate_phase(client):
    res = client.post("/api/v1/admin/phases", json={
        "id": "phase-core",
        "journeyId": "aws",
        "title": "Core again",
        "status": "Planned",
        "focusAreas": ["Compute"],
        "order": 4,
    })
    assert res.status_code == 422
    assert "already exists" in res.json()["message"]


def test_update_entry(client, seeded_store):
    res = client.patch("/api/v1/admin/entries/entry-lambda", json={"status": "Completed"})

    assert res.status_code == 200
    assert res.json()["entry"]["status"] == "Completed"
    stored = next(d for d in seeded_store.docs(ENTRIES) if d["id"] == "entry-lambda")
    assert stored["status"] == "Completed"


def test_update_missing_journey(client):
    res = client.patch("/api/v1/admin/journeys/gcp", json={"title": "GCP"})
    assert res.status_code == 404


def test_delete_phase_needs_cascade(client, seeded_store):
    res = client.delete("/api/v1/admin/phases/phase-foundations")

    assert res.status_code == 409
    assert sorted(res.json()["dependents"]) == ["entry-permissions", "entry-shell", "entry-subnets"]

    res = client.delete("/api/v1/admin/phases/phase-foundations", params={"cascade": "true"})

    assert res.status_code == 200
    assert res.json()["deleted"][-1] == "phase-foundations"
    assert "phase-foundations" not in _ids(seeded_store, PHASES)


def test_delete_journey_partial_failure(client, seeded_store):
    core = next(d for d in seeded_store.docs(PHASES) if d["id"] == "phase-core")
    seeded_store.fail_on_delete.add(core["docId"])

    res = client.delete("/api/v1/admin/journeys/aws", params={"cascade": "true"})

    assert res.status_code == 500
    body = res.json()
    assert body["status"] == "error"
    assert body["remaining"] == ["phase-core", "phase-advanced", "aws"]


def test_delete_entry(client, seeded_store):
    assert client.delete("/api/v1/admin/entries/entry-draft").status_code == 200
    assert "entry-draft" not in _ids(seeded_store, ENTRIES)
    assert client.get("/api/v1/admin/entries/entry-draft").status_code == 404


def test_bulk_status_all_succeed(client):
    res = client.post(
        "/api/v1/admin/entries/bulk-status",
        json={"ids": ["entry-lambda", "entry-draft"], "status": "Completed"},
    )

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "success"
    assert body["succeeded"] == ["entry-lambda", "entry-draft"]
    assert body["failed"] == {}


def test_bulk_delete_partial(client, seeded_store):
    res = client.post("/api/v1/admin/entries/bulk-delete", json={"ids": ["entry-ec2", "entry-missing"]})

    assert res.status_code == 207
    body = res.json()
    assert body["status"] == "partial"
    assert body["succeeded"] == ["entry-ec2"]
    assert list(body["failed"]) == ["entry-missing"]
    assert "entry-ec2" not in _ids(seeded_store, ENTRIES)


def test_bulk_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "BULK_MAX_IDS", 2)

    res = client.post("/api/v1/admin/entries/bulk-delete", json={"ids": ["a", "b", "c"]})

    assert res.status_code == 422
    assert "Too many ids" in res.json()["message"]


def test_audit_endpoint(client):
    res = client.get("/api/v1/admin/audit")

    assert res.status_code == 200
    body = res.json()
    assert body["summary"] == {"phases": 3, "entries": 6, "errors": 0, "warnings": 1, "ok": True}
    [finding] = body["findings"]
    assert finding["kind"] == "empty_focus_area"
    assert finding["ids"] == ["phase-advanced"]


def test_audit_endpoint_flags_drift(client):
    client.patch("/api/v1/admin/phases/phase-foundations", json={"totalModules": 5})

    body = client.get("/api/v1/admin/audit", params={"journeyId": "aws"}).json()

    kinds = [f["kind"] for f in body["findings"]]
    assert "total_modules_mismatch" in kinds
    assert body["summary"]["ok"] is True


def test_audit_unknown_journey(client):
    assert client.get("/api/v1/admin/audit", params={"journeyId": "gcp"}).status_code == 404
