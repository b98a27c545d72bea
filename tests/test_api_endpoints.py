import pytest
from fastapi.testclient import TestClient

from ballot_node.app import create_app
from ballot_node.ballot_runtime.engine import VotingEngine

ADMIN = "@admin"


def _as(identity):
    return {"X-Caller-Id": identity}


@pytest.fixture
def client():
    app = create_app(cfg={}, engine=VotingEngine(ADMIN))
    return TestClient(app)


def _open_voting(client):
    assert client.post("/workflow/voters/bulk", json={"identities": ["@A", "@B"]}, headers=_as(ADMIN)).status_code == 200
    assert client.post("/workflow/proposals/start", headers=_as(ADMIN)).status_code == 200
    assert client.post("/workflow/proposals", json={"description": "P0"}, headers=_as("@A")).json()["id"] == 0
    assert client.post("/workflow/proposals", json={"description": "P1"}, headers=_as("@B")).json()["id"] == 1
    assert client.post("/workflow/proposals/stop", headers=_as(ADMIN)).status_code == 200
    assert client.post("/workflow/voting/start", headers=_as(ADMIN)).status_code == 200


def test_health_and_phase(client):
    assert client.get("/health").json() == {"ok": True, "phase": "RegisteringVoters"}
    assert client.get("/workflow/phase").json()["phase"] == "RegisteringVoters"


def test_missing_caller_is_401(client):
    resp = client.post("/workflow/voters", json={"identity": "@A"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "auth_required"


def test_admit_and_lookup(client):
    assert client.post("/workflow/voters", json={"identity": "@A"}, headers=_as(ADMIN)).json() == {
        "ok": True,
        "identity": "@A",
    }
    voter = client.get("/workflow/voters/@A", headers=_as("@A")).json()["voter"]
    assert voter == {"identity": "@A", "is_registered": True, "has_voted": False, "voted_proposal_id": None}

    dup = client.post("/workflow/voters", json={"identity": "@A"}, headers=_as(ADMIN))
    assert dup.status_code == 409
    assert dup.json()["detail"] == "already_registered"


def test_non_admin_admit_forbidden(client):
    resp = client.post("/workflow/voters", json={"identity": "@B"}, headers=_as("@stranger"))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "unauthorized"


def test_revoke(client):
    client.post("/workflow/voters", json={"identity": "@A"}, headers=_as(ADMIN))
    assert client.delete("/workflow/voters/@A", headers=_as(ADMIN)).status_code == 200
    assert client.delete("/workflow/voters/@A", headers=_as(ADMIN)).json()["detail"] == "not_registered"


def test_stranger_submit_is_forbidden(client):
    client.post("/workflow/proposals/start", headers=_as(ADMIN))
    resp = client.post("/workflow/proposals", json={"description": "x"}, headers=_as("@stranger"))
    assert resp.status_code == 403


def test_empty_description_is_400(client):
    client.post("/workflow/proposals/start", headers=_as(ADMIN))
    resp = client.post("/workflow/proposals", json={"description": ""}, headers=_as(ADMIN))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "empty_description"


def test_full_round_over_http(client):
    _open_voting(client)

    assert client.post("/workflow/votes", json={"proposal_id": 1}, headers=_as("@A")).status_code == 200
    assert client.post("/workflow/votes", json={"proposal_id": 1}, headers=_as("@B")).status_code == 200
    again = client.post("/workflow/votes", json={"proposal_id": 0}, headers=_as("@B"))
    assert again.status_code == 409
    assert again.json()["detail"] == "already_voted"

    early = client.get("/workflow/winner")
    assert early.status_code == 409
    assert early.json()["detail"] == "tally_not_available"

    bad_tally = client.post("/workflow/tally", headers=_as(ADMIN))
    assert bad_tally.json()["detail"] == "invalid_phase"

    client.post("/workflow/voting/stop", headers=_as(ADMIN))
    tally = client.post("/workflow/tally", headers=_as(ADMIN)).json()
    assert tally == {"ok": True, "winning_proposal_id": 1, "phase": "VotesTallied"}

    winner = client.get("/workflow/winner").json()
    assert winner["winning_proposal_id"] == 1
    assert winner["proposal"] == {"id": 1, "description": "P1", "vote_count": 2}


def test_proposal_reads(client):
    _open_voting(client)
    listed = client.get("/workflow/proposals", headers=_as("@A")).json()["proposals"]
    assert [p["description"] for p in listed] == ["P0", "P1"]

    assert client.get("/workflow/proposals/1", headers=_as("@B")).json()["proposal"]["description"] == "P1"
    assert client.get("/workflow/proposals/5", headers=_as("@B")).status_code == 404
    assert client.get("/workflow/proposals", headers=_as("@stranger")).status_code == 403


def test_advance_endpoint(client):
    resp = client.post("/workflow/phase/advance", json={"next": "ProposalsRegistrationStarted"}, headers=_as(ADMIN))
    assert resp.json() == {"ok": True, "phase": "ProposalsRegistrationStarted"}

    skip = client.post("/workflow/phase/advance", json={"next": "VotingSessionStarted"}, headers=_as(ADMIN))
    assert skip.status_code == 409
    assert skip.json()["detail"] == "invalid_transition"

    unknown = client.post("/workflow/phase/advance", json={"next": "Nope"}, headers=_as(ADMIN))
    assert unknown.status_code == 422


def test_events_endpoint(client):
    client.post("/workflow/voters", json={"identity": "@A"}, headers=_as(ADMIN))
    body = client.get("/workflow/events").json()
    assert body["verified"] is True
    assert [e["kind"] for e in body["events"]] == ["VoterRegistered", "VoterRegistered"]
    assert body["events"][0]["data"] == {"identity": ADMIN, "genesis": True}


def test_create_app_without_persistence(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BALLOT_EVENT_LOG", "")
    monkeypatch.setenv("BALLOT_ADMIN_ID", "@chair")
    app = create_app()
    assert app.state.engine.admin_id == "@chair"
    assert list(tmp_path.iterdir()) == []


def test_admitted_identity_is_normalized(client):
    resp = client.post("/workflow/voters", json={"identity": "  @A "}, headers=_as(ADMIN))
    assert resp.json() == {"ok": True, "identity": "@A"}

    client.post("/workflow/proposals/start", headers=_as(ADMIN))
    submitted = client.post("/workflow/proposals", json={"description": "P0"}, headers=_as("@A "))
    assert submitted.status_code == 200
    assert submitted.json()["id"] == 0


def test_blank_identity_rejected(client):
    assert client.post("/workflow/voters", json={"identity": "   "}, headers=_as(ADMIN)).status_code == 422
    assert client.get("/workflow/voters/%20", headers=_as(ADMIN)).status_code == 422


def test_voter_paths_are_normalized(client):
    client.post("/workflow/voters/bulk", json={"identities": [" @B", "", "  "]}, headers=_as(ADMIN))
    assert client.get("/workflow/voters/%20@B%20", headers=_as(ADMIN)).json()["voter"]["is_registered"] is True
    assert client.delete("/workflow/voters/@B%20", headers=_as(ADMIN)).json() == {"ok": True, "identity": "@B"}
