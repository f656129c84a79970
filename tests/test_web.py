import pytest

from mortgage_coach_web.app import create_app


@pytest.fixture
def app():
    return create_app({"TESTING": True, "STATE_DATABASE_URL": "sqlite://", "COACH_IMMEDIATE": True})


@pytest.fixture
def client(app):
    return app.test_client()


TIP = {
    "month": 3,
    "dueDate": "2026-05-09",
    "interestPaid": 2700.5,
    "interestSharePct": 52.6,
    "suggestedExtra": 616.4,
    "estimatedInterestSaved": 5000,
    "extraTier": "meaningful",
    "phase": "balanced",
}


class TestState:
    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_defaults(self, client):
        data = client.get("/api/state").get_json()
        assert data["loanAmount"] == 300000
        assert data["commissionMode"] == "interestRate"
        assert [extra["month"] for extra in data["extraPayments"]] == [3, 9]

    def test_put_is_persisted_per_browser(self, app, client):
        response = client.put("/api/state", json={"loanAmount": 150000, "language": "ka"})
        assert response.status_code == 200
        assert client.get("/api/state").get_json()["loanAmount"] == 150000

        other = app.test_client()
        assert other.get("/api/state").get_json()["loanAmount"] == 300000

    def test_put_ignores_malformed_fields(self, client):
        data = client.put("/api/state", json={"loanAmount": "lots", "loanTermMonths": 120}).get_json()
        assert data["loanAmount"] == 300000
        assert data["loanTermMonths"] == 120

    def test_delete_restores_defaults(self, client):
        client.put("/api/state", json={"loanAmount": 150000})
        assert client.delete("/api/state").get_json()["loanAmount"] == 300000
        assert client.get("/api/state").get_json()["loanAmount"] == 300000


class TestExtras:
    def test_add_and_remove(self, client):
        response = client.post("/api/extras")
        assert response.status_code == 201
        assert [extra["id"] for extra in response.get_json()["extraPayments"]] == [1, 2, 3]

        data = client.delete("/api/extras/1").get_json()
        assert [extra["id"] for extra in data["extraPayments"]] == [2, 3]

    def test_apply_tip_merges(self, client):
        data = client.post("/api/tips/apply", json=TIP).get_json()
        assert data["extraPayments"][0]["amount"] == pytest.approx(17675.57)
        assert len(data["extraPayments"]) == 2

    def test_apply_tip_rounds_month(self, client):
        data = client.post("/api/tips/apply", json={**TIP, "month": 8.6}).get_json()
        assert [extra["month"] for extra in data["extraPayments"]] == [3, 9]
        assert data["extraPayments"][1]["amount"] == pytest.approx(27316.4)

    def test_apply_tip_rejects_bad_payload(self, client):
        assert client.post("/api/tips/apply", json={**TIP, "phase": "sideways"}).status_code == 400
        assert client.post("/api/tips/apply", json=[TIP]).status_code == 400


class TestSchedule:
    def test_schedule(self, client):
        data = client.get("/api/schedule").get_json()
        assert data["baselineSummary"]["months"] == 84
        assert data["monthsReduced"] > 0
        assert len(data["planRows"]) == data["planSummary"]["months"]

    def test_invalid_loan(self, client):
        client.put("/api/state", json={"loanAmount": 0})
        response = client.get("/api/schedule")
        assert response.status_code == 422
        assert response.get_json()["code"] == "error.loanAmountGt0"

    def test_oversized_term(self, client):
        client.put("/api/state", json={"loanTermMonths": 1e9})
        response = client.get("/api/schedule")
        assert response.status_code == 422
        assert response.get_json()["code"] == "error.unableToCalculate"

    def test_error_is_localized(self, client):
        client.put("/api/state", json={"loanAmount": 0, "language": "ka"})
        body = client.get("/api/schedule").get_json()
        assert body["error"] != "Loan amount must be greater than 0."

    def test_chart(self, client):
        bars = client.get("/api/chart?max_bars=2").get_json()
        assert [bar["year"] for bar in bars] == [2026, 2027]


class TestCoach:
    def test_request_and_poll(self, client):
        response = client.post("/api/coach")
        assert response.status_code == 202
        body = response.get_json()
        assert body["token"] == 1
        assert body["status"] == "connected"
        assert len(body["tips"]) == 4

        polled = client.get("/api/coach").get_json()
        assert polled["status"] == "connected"
        assert polled["summary"]["bestMonths"] == [1, 2, 3]

    def test_editing_inputs_resets_coach(self, client):
        client.post("/api/coach")
        client.post("/api/extras")
        body = client.get("/api/coach").get_json()
        assert body["status"] == "idle"
        assert body["tips"] == []

    def test_coach_without_schedule(self, client):
        client.put("/api/state", json={"loanAmount": 0})
        body = client.post("/api/coach").get_json()
        assert body["status"] == "error"
        assert body["error"]

    def test_poll_without_request(self, app, client):
        body = client.get("/api/coach").get_json()
        assert body["status"] == "idle"
        assert body["token"] == 0
        assert len(app.extensions["coach_sessions"]) == 0

    def test_editing_without_coaching_keeps_no_session(self, app, client):
        client.put("/api/state", json={"loanAmount": 150000})
        client.post("/api/extras")
        assert len(app.extensions["coach_sessions"]) == 0

    def test_reset_drops_session(self, app, client):
        client.post("/api/coach")
        assert len(app.extensions["coach_sessions"]) == 1
        client.delete("/api/state")
        assert len(app.extensions["coach_sessions"]) == 0
        assert client.get("/api/coach").get_json()["status"] == "idle"


class TestCoachSessionLimit:
    def test_sessions_are_bounded(self):
        app = create_app(
            {"TESTING": True, "STATE_DATABASE_URL": "sqlite://", "COACH_IMMEDIATE": True, "COACH_MAX_SESSIONS": 10}
        )
        for _ in range(50):
            assert app.test_client().post("/api/coach").status_code == 202
        assert len(app.extensions["coach_sessions"]) == 10

    def test_least_recently_used_is_evicted(self):
        app = create_app(
            {"TESTING": True, "STATE_DATABASE_URL": "sqlite://", "COACH_IMMEDIATE": True, "COACH_MAX_SESSIONS": 2}
        )
        first, second, third = app.test_client(), app.test_client(), app.test_client()
        first.post("/api/coach")
        second.post("/api/coach")
        first.post("/api/coach")
        third.post("/api/coach")
        assert first.get("/api/coach").get_json()["status"] == "connected"
        assert second.get("/api/coach").get_json()["status"] == "idle"
