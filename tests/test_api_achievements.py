"""
Achievement API tests — /api/v1/achievements.

Covers authentication/permission gating, the full workflow over HTTP,
error envelopes, status filtering, history and attachments.
"""

import io

import pytest

BASE = "/api/v1/achievements"


@pytest.fixture()
def alice_h(cast, auth_headers):
    return auth_headers(cast.alice)


@pytest.fixture()
def advisor_h(cast, auth_headers):
    return auth_headers(cast.advisor_a)


def _create(client, headers, **overrides):
    body = {
        "title": "National Robotics Contest",
        "achievement_type": "competition",
        "description": "Second place, autonomous track",
        "points": 30,
        "level": "National",
        "tags": ["robotics", " ai "],
    }
    body.update(overrides)
    resp = client.post(BASE, json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


# ═══════════════════════════════════════════════════════════════
# Gating
# ═══════════════════════════════════════════════════════════════
class TestGating:

    def test_missing_token_401(self, client):
        resp = client.get(BASE)
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_garbage_token_401(self, client):
        resp = client.get(BASE, headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_advisor_cannot_create_403(self, client, advisor_h):
        resp = client.post(BASE, json={"title": "x"}, headers=advisor_h)
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["code"] == "ERR_FORBIDDEN"
        assert body["details"]["required"] == "achievement:create"

    def test_student_cannot_verify_403(self, client, alice_h):
        created = _create(client, alice_h)
        resp = client.post(f"{BASE}/{created['id']}/verify", headers=alice_h)
        assert resp.status_code == 403

    def test_wrong_content_type_415(self, client, alice_h):
        resp = client.post(BASE, data="title=x", headers={**alice_h, "Content-Type": "text/plain"})
        assert resp.status_code == 415


# ═══════════════════════════════════════════════════════════════
# Create / read / update
# ═══════════════════════════════════════════════════════════════
class TestCrud:

    def test_create_returns_draft_with_content(self, client, cast, alice_h):
        body = _create(client, alice_h)

        assert body["status"] == "draft"
        assert body["student_id"] == cast.alice.id
        assert body["content"]["title"] == "National Robotics Contest"
        assert body["content"]["level"] == "national"
        assert body["content"]["tags"] == ["robotics", "ai"]
        assert body["content"]["id"] == body["content_ref"]
        assert body["content"]["status_history"][0]["status"] == "draft"

    def test_create_validation_400(self, client, alice_h):
        resp = client.post(BASE, json={"title": "  ", "points": -1}, headers=alice_h)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert set(body["details"]) == {"title", "points"}

    def test_array_body_400(self, client, services, cast, alice_h):
        resp = client.post(BASE, json=["x"], headers=alice_h)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "body" in body["details"]
        assert services.lifecycle.list_for_principal(cast.p_alice).total == 0

    def test_idempotency_key_replays_create(self, client, services, cast, alice_h):
        headers = {**alice_h, "Idempotency-Key": "form-7f3a"}
        first = client.post(BASE, json={"title": "Debate finals"}, headers=headers)
        second = client.post(BASE, json={"title": "Debate finals"}, headers=headers)
        assert first.status_code == second.status_code == 201
        assert first.get_json()["id"] == second.get_json()["id"]
        assert services.lifecycle.list_for_principal(cast.p_alice).total == 1

    def test_unknown_type_400(self, client, alice_h):
        resp = client.post(BASE, json={"title": "x", "achievement_type": "sports"}, headers=alice_h)
        assert resp.status_code == 400
        assert "achievement_type" in resp.get_json()["details"]

    def test_admin_without_student_profile_cannot_create(self, client, cast, auth_headers):
        resp = client.post(BASE, json={"title": "x"}, headers=auth_headers(cast.admin))
        assert resp.status_code == 403

    def test_get_detail(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        resp = client.get(f"{BASE}/{created['id']}", headers=advisor_h)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["content"]["points"] == 30
        assert body["student"]["full_name"] == "Alice Anders"

    def test_get_unknown_404(self, client, alice_h):
        resp = client.get(f"{BASE}/does-not-exist", headers=alice_h)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "ERR_NOT_FOUND"

    def test_foreign_advisor_forbidden(self, client, cast, alice_h, auth_headers):
        created = _create(client, alice_h)
        resp = client.get(f"{BASE}/{created['id']}", headers=auth_headers(cast.advisor_b))
        assert resp.status_code == 403

    def test_update_draft(self, client, alice_h):
        created = _create(client, alice_h)
        resp = client.put(
            f"{BASE}/{created['id']}",
            json={"title": "International Robotics Contest", "points": 60},
            headers=alice_h,
        )
        assert resp.status_code == 200
        content = resp.get_json()["content"]
        assert content["title"] == "International Robotics Contest"
        assert content["points"] == 60

    def test_update_submitted_409(self, client, alice_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        resp = client.put(f"{BASE}/{created['id']}", json={"title": "Changed"}, headers=alice_h)
        assert resp.status_code == 409
        assert resp.get_json()["details"]["current_status"] == "submitted"

    def test_peer_cannot_update(self, client, cast, alice_h, auth_headers):
        created = _create(client, alice_h)
        resp = client.put(
            f"{BASE}/{created['id']}", json={"title": "Mine now"}, headers=auth_headers(cast.bob),
        )
        assert resp.status_code == 403


# ═══════════════════════════════════════════════════════════════
# Workflow
# ═══════════════════════════════════════════════════════════════
class TestWorkflow:

    def test_submit_then_verify(self, client, cast, alice_h, advisor_h):
        created = _create(client, alice_h)

        resp = client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["achievement"]["status"] == "submitted"
        assert body["outcome"] == "committed"
        assert body["warnings"] == []

        resp = client.post(f"{BASE}/{created['id']}/verify", headers=advisor_h)
        assert resp.status_code == 200
        achievement = resp.get_json()["achievement"]
        assert achievement["status"] == "verified"
        assert achievement["verified_by"] == cast.advisor_a.user_id

    def test_reject_then_resubmit(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)

        resp = client.post(
            f"{BASE}/{created['id']}/reject", json={"rejection_note": "Certificate missing"},
            headers=advisor_h,
        )
        assert resp.status_code == 200
        assert resp.get_json()["achievement"]["rejection_note"] == "Certificate missing"

        resp = client.put(f"{BASE}/{created['id']}", json={"title": "With certificate"}, headers=alice_h)
        assert resp.status_code == 200
        resp = client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        assert resp.get_json()["achievement"]["status"] == "submitted"

    def test_reject_accepts_note_alias(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        resp = client.post(f"{BASE}/{created['id']}/reject", json={"note": "Blurry scan"}, headers=advisor_h)
        assert resp.get_json()["achievement"]["rejection_note"] == "Blurry scan"

    def test_reject_without_note_400(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        resp = client.post(f"{BASE}/{created['id']}/reject", json={}, headers=advisor_h)
        assert resp.status_code == 400

    def test_reject_array_body_400(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        resp = client.post(f"{BASE}/{created['id']}/reject", json=["bad"], headers=advisor_h)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ERR_VALIDATION_INVALID"
        detail = client.get(f"{BASE}/{created['id']}", headers=alice_h).get_json()
        assert detail["status"] == "submitted"

    def test_reject_draft_is_conflict_before_validation(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        resp = client.post(f"{BASE}/{created['id']}/reject", json={}, headers=advisor_h)
        assert resp.status_code == 409

    def test_verify_draft_409(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        resp = client.post(f"{BASE}/{created['id']}/verify", headers=advisor_h)
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"] == {"action": "verify", "current_status": "draft"}

    def test_double_submit_409(self, client, alice_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        resp = client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        assert resp.status_code == 409

    def test_admin_can_verify_anyone(self, client, cast, auth_headers):
        dave_h = auth_headers(cast.dave)
        created = _create(client, dave_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=dave_h)
        resp = client.post(f"{BASE}/{created['id']}/verify", headers=auth_headers(cast.admin))
        assert resp.status_code == 200

    def test_notification_recorded_on_verify(self, client, services, alice_h, advisor_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        client.post(f"{BASE}/{created['id']}/verify", headers=advisor_h)

        document = services.contents.find_content_by_id(created["content_ref"])
        assert document["notifications"][-1]["type"] == "achievement_verified"
        assert document["notifications"][-1]["message"] == "National Robotics Contest approved"


# ═══════════════════════════════════════════════════════════════
# Delete
# ═══════════════════════════════════════════════════════════════
class TestDelete:

    def test_delete_draft(self, client, alice_h):
        created = _create(client, alice_h)
        resp = client.delete(f"{BASE}/{created['id']}", headers=alice_h)
        assert resp.status_code == 200
        assert resp.get_json()["achievement"]["status"] == "deleted"

        assert client.get(f"{BASE}/{created['id']}", headers=alice_h).status_code == 404
        listing = client.get(BASE, headers=alice_h).get_json()
        assert listing["pagination"]["total"] == 0

    def test_delete_submitted_409(self, client, alice_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        resp = client.delete(f"{BASE}/{created['id']}", headers=alice_h)
        assert resp.status_code == 409

    def test_delete_twice_409(self, client, alice_h):
        created = _create(client, alice_h)
        client.delete(f"{BASE}/{created['id']}", headers=alice_h)
        resp = client.delete(f"{BASE}/{created['id']}", headers=alice_h)
        assert resp.status_code == 409


# ═══════════════════════════════════════════════════════════════
# Listing & history
# ═══════════════════════════════════════════════════════════════
class TestListing:

    def test_list_summaries(self, client, alice_h, advisor_h):
        _create(client, alice_h, title="First")
        _create(client, alice_h, title="Second", points=5)

        body = client.get(BASE, headers=advisor_h).get_json()
        assert body["pagination"]["total"] == 2
        titles = {item["title"] for item in body["items"]}
        assert titles == {"First", "Second"}
        assert all(item["student_name"] == "Alice Anders" for item in body["items"])

    def test_status_filter(self, client, alice_h):
        first = _create(client, alice_h, title="First")
        _create(client, alice_h, title="Second")
        client.post(f"{BASE}/{first['id']}/submit", headers=alice_h)

        body = client.get(f"{BASE}?status=submitted", headers=alice_h).get_json()
        assert [item["id"] for item in body["items"]] == [first["id"]]

    @pytest.mark.parametrize("status", ["deleted", "archived"])
    def test_bad_status_filter_400(self, client, alice_h, status):
        resp = client.get(f"{BASE}?status={status}", headers=alice_h)
        assert resp.status_code == 400
        assert "status" in resp.get_json()["details"]

    def test_history(self, client, alice_h, advisor_h):
        created = _create(client, alice_h)
        client.post(f"{BASE}/{created['id']}/submit", headers=alice_h)
        client.post(f"{BASE}/{created['id']}/reject", json={"note": "Add a photo"}, headers=advisor_h)

        resp = client.get(f"{BASE}/{created['id']}/history", headers=alice_h)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["achievement_id"] == created["id"]
        assert [h["status"] for h in body["history"]] == ["draft", "submitted", "rejected"]
        assert body["history"][-1]["note"] == "rejected: Add a photo"
        assert isinstance(body["history"][0]["changed_at"], str)


# ═══════════════════════════════════════════════════════════════
# Attachments
# ═══════════════════════════════════════════════════════════════
class TestAttachments:

    def _upload(self, client, headers, ref_id, payload=b"%PDF-1.4 certificate", name="certificate.pdf"):
        return client.post(
            f"{BASE}/{ref_id}/attachments",
            data={"file": (io.BytesIO(payload), name, "application/pdf")},
            headers=headers,
            content_type="multipart/form-data",
        )

    def test_upload_and_download(self, client, alice_h):
        created = _create(client, alice_h)
        resp = self._upload(client, alice_h, created["id"])

        assert resp.status_code == 201
        attachment = resp.get_json()
        assert attachment["file_name"] == "certificate.pdf"
        assert attachment["file_type"] == "application/pdf"
        assert attachment["file_url"].startswith("/uploads/")

        detail = client.get(f"{BASE}/{created['id']}", headers=alice_h).get_json()
        assert detail["content"]["attachments"][0]["file_url"] == attachment["file_url"]

        download = client.get(attachment["file_url"])
        assert download.status_code == 200
        assert download.data == b"%PDF-1.4 certificate"

    def test_missing_file_400(self, client, alice_h):
        created = _create(client, alice_h)
        resp = client.post(
            f"{BASE}/{created['id']}/attachments", data={}, headers=alice_h,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_too_large_413(self, app, client, alice_h, monkeypatch):
        created = _create(client, alice_h)
        monkeypatch.setitem(app.config, "UPLOAD_MAX_BYTES", 8)
        resp = self._upload(client, alice_h, created["id"], payload=b"0123456789")
        assert resp.status_code == 413
        assert resp.get_json()["code"] == "ERR_PAYLOAD_TOO_LARGE"

    def test_peer_cannot_attach(self, client, cast, alice_h, auth_headers):
        created = _create(client, alice_h)
        resp = self._upload(client, auth_headers(cast.bob), created["id"])
        assert resp.status_code == 403

    def test_unknown_upload_404(self, client):
        assert client.get("/uploads/nope.pdf").status_code == 404
