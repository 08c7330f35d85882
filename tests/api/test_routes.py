"""End-to-end tests of the HTTP surface over in-memory services."""

from fastapi.testclient import TestClient


COURSE_ID = "course-pharma-101"
USER_ID = "user-ana"
ALL_LESSONS = ["m1_l1", "m1_l2", "m2_l3", "m2_l4"]
ADMIN_PAIR = f"/v1/admin/learners/{USER_ID}/courses/{COURSE_ID}"


def enroll(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post(
        "/v1/enrollments", json={"course_id": COURSE_ID}, headers=headers
    )
    assert response.status_code == 201


def complete_lessons(
    client: TestClient, headers: dict[str, str], keys: list[str]
) -> dict:
    data = {}
    for key in keys:
        response = client.post(
            f"/v1/progress/{COURSE_ID}/lessons",
            json={"lesson_key": key},
            headers=headers,
        )
        assert response.status_code == 200
        data = response.json()
    return data


# ==============================================================================
# Identity and errors
# ==============================================================================


class TestIdentity:
    def test_missing_actor_is_unauthorized(self, client: TestClient) -> None:
        response = client.get("/v1/enrollments")

        assert response.status_code == 401
        data = response.json()
        assert data["error"] is True
        assert data["status_code"] == 401
        assert "request_id" in data

    def test_admin_routes_require_role(
        self, client: TestClient, learner_headers
    ) -> None:
        response = client.post(
            f"{ADMIN_PAIR}/force-complete", json={}, headers=learner_headers
        )

        assert response.status_code == 403

    def test_not_enrolled_maps_to_404(
        self, client: TestClient, learner_headers
    ) -> None:
        response = client.get(f"/v1/progress/{COURSE_ID}", headers=learner_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Learner is not enrolled in this course"

    def test_unknown_course(self, client: TestClient, learner_headers) -> None:
        response = client.post(
            "/v1/enrollments", json={"course_id": "missing"}, headers=learner_headers
        )

        assert response.status_code == 404

    def test_validation_errors_list_fields(
        self, client: TestClient, learner_headers
    ) -> None:
        enroll(client, learner_headers)
        response = client.post(
            f"/v1/progress/{COURSE_ID}/quizzes/q1",
            json={"score": 140},
            headers=learner_headers,
        )

        assert response.status_code == 422
        data = response.json()
        assert data["message"] == "Validation error"
        assert any(d["field"].endswith("score") for d in data["details"])


# ==============================================================================
# Learner flow
# ==============================================================================


class TestLearnerFlow:
    def test_enroll_and_list(self, client: TestClient, learner_headers) -> None:
        response = client.post(
            "/v1/enrollments",
            json={"course_id": COURSE_ID, "method": "bulk", "team_id": "team-7"},
            headers=learner_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "active"
        assert data["progress"] == 0
        assert data["course_name"] == "Pharmacy Basics"
        # Provenance is not self-declared on the learner route
        assert data["enrolled_by"] == {
            "method": "manual",
            "team_id": None,
            "company_id": None,
        }

        listing = client.get("/v1/enrollments", headers=learner_headers).json()
        assert listing["total"] == 1
        assert listing["items"][0]["course_id"] == COURSE_ID

    def test_lesson_events_update_progress(
        self, client: TestClient, learner_headers
    ) -> None:
        enroll(client, learner_headers)

        data = complete_lessons(client, learner_headers, ["m1_l1"])

        assert data["overall_progress"] == 25
        assert data["completed_lessons"] == ["m1_l1"]
        assert data["lesson_progress"]["m1_l1"]["completed"] is True
        summary = client.get("/v1/enrollments", headers=learner_headers).json()
        assert summary["items"][0]["progress"] == 25

    def test_module_completion(self, client: TestClient, learner_headers) -> None:
        enroll(client, learner_headers)

        response = client.post(
            f"/v1/progress/{COURSE_ID}/modules/m1/complete", headers=learner_headers
        )

        assert response.status_code == 200
        assert response.json()["completed_modules"] == ["m1"]

    def test_unknown_module(self, client: TestClient, learner_headers) -> None:
        enroll(client, learner_headers)

        response = client.post(
            f"/v1/progress/{COURSE_ID}/modules/m9/complete", headers=learner_headers
        )

        assert response.status_code == 404

    def test_quiz_score(self, client: TestClient, learner_headers) -> None:
        enroll(client, learner_headers)

        response = client.post(
            f"/v1/progress/{COURSE_ID}/quizzes/q1",
            json={"score": 80},
            headers=learner_headers,
        )

        assert response.status_code == 200
        assert response.json()["quiz_scores"] == {"q1": 80.0}
        assert response.json()["quiz_attempts"] == {"q1": 1}

    def test_unenroll_keeps_progress(self, client: TestClient, learner_headers) -> None:
        enroll(client, learner_headers)
        complete_lessons(client, learner_headers, ["m1_l1"])

        response = client.delete(
            f"/v1/enrollments/{COURSE_ID}", headers=learner_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "inactive"
        progress = client.get(f"/v1/progress/{COURSE_ID}", headers=learner_headers)
        assert progress.json()["completed_lessons"] == ["m1_l1"]

    def test_completion_issues_verifiable_certificate(
        self, client: TestClient, learner_headers
    ) -> None:
        enroll(client, learner_headers)

        data = complete_lessons(client, learner_headers, ALL_LESSONS)

        assert data["completed"] is True
        assert data["certificate_id"] is not None

        mine = client.get("/v1/certificates/me", headers=learner_headers).json()
        assert mine["total"] == 1
        certificate = mine["items"][0]
        assert certificate["id"] == data["certificate_id"]
        assert certificate["verification_url"].endswith(
            certificate["verification_code"]
        )

        code = certificate["verification_code"].lower()
        verification = client.get(f"/v1/certificates/verify/{code}").json()
        assert verification["is_valid"] is True
        assert verification["certificate"]["course_name"] == "Pharmacy Basics"

    def test_other_learners_certificate_is_hidden(
        self, client: TestClient, learner_headers
    ) -> None:
        enroll(client, learner_headers)
        data = complete_lessons(client, learner_headers, ALL_LESSONS)

        response = client.get(
            f"/v1/certificates/{data['certificate_id']}",
            headers={"X-Actor-ID": "user-bob"},
        )

        assert response.status_code == 404

    def test_verify_unknown_code(self, client: TestClient) -> None:
        response = client.get("/v1/certificates/verify/AAAA-BBBB-CCCC-DDDD")

        assert response.status_code == 200
        assert response.json()["is_valid"] is False
        assert response.json()["status"] == "invalid"


# ==============================================================================
# Admin flow
# ==============================================================================


class TestAdminFlow:
    def test_admin_enrollment_provenance_survives_re_enroll(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        response = client.post(
            f"{ADMIN_PAIR}/enroll",
            json={"team_id": "team-7", "company_id": "acme"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["enrolled_by"] == {
            "method": "bulk",
            "team_id": "team-7",
            "company_id": "acme",
        }

        client.delete(f"/v1/enrollments/{COURSE_ID}", headers=learner_headers)
        again = client.post(
            "/v1/enrollments", json={"course_id": COURSE_ID}, headers=learner_headers
        )

        assert again.status_code == 201
        assert again.json()["status"] == "active"
        assert again.json()["enrolled_by"]["team_id"] == "team-7"

    def test_force_complete(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        enroll(client, learner_headers)

        response = client.post(
            f"{ADMIN_PAIR}/force-complete",
            json={"note": "completed offline"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["completed"] is True
        assert data["overall_progress"] == 100
        assert data["certificate_id"] is not None
        assert data["admin_override"]["action"] == "force_complete"
        assert data["admin_override"]["note"] == "completed offline"

    def test_reset_and_revoke(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        enroll(client, learner_headers)
        complete_lessons(client, learner_headers, ALL_LESSONS)

        reset = client.post(f"{ADMIN_PAIR}/reset", json={}, headers=admin_headers)
        assert reset.status_code == 200
        assert reset.json()["overall_progress"] == 0
        assert reset.json()["certificate_id"] is None

        revoked = client.post(f"{ADMIN_PAIR}/revoke", json={}, headers=admin_headers)
        assert revoked.status_code == 200
        assert revoked.json()["progress"]["revoked"] is True
        assert revoked.json()["enrollment"]["status"] == "revoked"

        again = client.post(
            "/v1/enrollments", json={"course_id": COURSE_ID}, headers=learner_headers
        )
        assert again.status_code == 409

    def test_admin_lesson_mark(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        enroll(client, learner_headers)

        response = client.post(
            f"{ADMIN_PAIR}/lessons/complete",
            json={"lesson_key": "m2_l3"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["completed_lessons"] == ["m2_l3"]
        assert response.json()["admin_override"]["action"] == "mark_lesson_complete"

    def test_revoke_certificate(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        enroll(client, learner_headers)
        data = complete_lessons(client, learner_headers, ALL_LESSONS)

        response = client.post(
            f"/v1/admin/certificates/{data['certificate_id']}/revoke",
            json={"reason": "fraud"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "revoked"
        assert response.json()["revoked_by"] == "admin-root"

    def test_issue_requires_completion(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        enroll(client, learner_headers)

        response = client.post(
            "/v1/admin/certificates/issue",
            json={"user_id": USER_ID, "course_id": COURSE_ID},
            headers=admin_headers,
        )

        assert response.status_code == 409

    def test_batch_issue_and_verify(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        enroll(client, learner_headers)
        data = complete_lessons(client, learner_headers, ALL_LESSONS)

        issued = client.post(
            "/v1/admin/certificates/issue-batch",
            json={"course_id": COURSE_ID, "user_ids": [USER_ID, "user-zed"]},
            headers=admin_headers,
        )

        assert issued.status_code == 200
        body = issued.json()
        assert body["total"] == 2
        assert body["success"] == 1
        assert body["certificate_ids"] == {USER_ID: data["certificate_id"]}
        assert body["failures"] == {"user-zed": "not_enrolled"}

        mine = client.get("/v1/certificates/me", headers=learner_headers).json()
        code = mine["items"][0]["verification_code"]
        verified = client.post(
            "/v1/admin/certificates/verify-batch",
            json={"verification_codes": [code, "AAAA-BBBB-CCCC-DDDD"]},
            headers=admin_headers,
        )

        assert verified.status_code == 200
        summary = verified.json()
        assert (summary["total"], summary["valid"], summary["invalid"]) == (2, 1, 1)
        assert summary["results"][0]["verification_code"] == code
        assert summary["results"][0]["status"] == "valid"
        assert summary["results"][1]["status"] == "invalid"

    def test_reconcile_and_sweep(
        self, client: TestClient, learner_headers, admin_headers
    ) -> None:
        enroll(client, learner_headers)
        complete_lessons(client, learner_headers, ["m1_l1"])

        single = client.post(
            f"/v1/admin/reconciliation/learners/{USER_ID}/courses/{COURSE_ID}",
            headers=admin_headers,
        )
        assert single.status_code == 200
        assert single.json()["changed_fields"] == []
        assert single.json()["new_progress"] == 25

        sweep = client.post(
            "/v1/admin/reconciliation/sweep", json={}, headers=admin_headers
        )
        assert sweep.status_code == 200
        assert sweep.json()["total"] == 1
        assert sweep.json()["synced"] == 1
        assert sweep.json()["failed"] == 0
