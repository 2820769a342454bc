"""HTTP-level tests for the assistant and schedule endpoints."""

from conftest import build_weather


def chat(client, message, session_id="web"):
    return client.post("/api/assistant/chat", json={"message": message, "sessionId": session_id})


def generate(client):
    response = client.post("/api/schedule/generate")
    assert response.status_code == 200
    return response.json()


class TestRoot:
    def test_root_lists_agents(self, client):
        body = client.get("/").json()
        assert body["status"] == "healthy"
        assert set(body["agents"]) == {"planner", "assistant"}

    def test_health(self, client):
        assert client.get("/api/health/").json()["status"] == "healthy"

        planner = client.get("/api/schedule/health").json()
        assert planner["backend"] == "fixture"

        assistant = client.get("/api/assistant/health").json()
        assert assistant["pending_actions"] == 0


class TestAssistantEndpoints:
    def test_command_executes_directly(self, client, controller):
        response = chat(client, "start zone 3 for 5 minutes")

        assert response.status_code == 200
        body = response.json()
        assert body["intent"] == "startZone"
        assert body["actionExecuted"] is True
        assert body["answer"] == "✓ Started Zone 3 for 5 minutes"
        assert controller.active_zone_id == 3

    def test_confirm_flow(self, client, controller):
        body = chat(client, "start zone 2 for 15 minutes").json()
        assert body["requiresConfirmation"] is True
        assert body["confirmationMessage"] == "Confirm: Start Zone 2 for 15 minutes?"
        assert controller.calls == []

        confirmed = client.post("/api/assistant/confirm", json={"messageId": body["messageId"]})
        assert confirmed.status_code == 200
        assert confirmed.json()["answer"] == "✓ Started Zone 2 for 15 minutes"

        again = client.post("/api/assistant/confirm", json={"messageId": body["messageId"]})
        assert again.status_code == 409
        assert again.json()["detail"]["kind"] == "state"
        assert controller.calls == ["start_zone"]

    def test_confirmation_reply_stays_in_its_exchange(self, client, store):
        """Should return the confirmed outcome together with the command that asked for it."""
        body = chat(client, "stop all zones").json()
        client.post("/api/assistant/confirm", json={"messageId": body["messageId"]})

        recent = store.get_recent_turns(1, session_id="web")
        assert [t.role for t in recent] == ["user", "assistant", "assistant"]
        assert recent[0].content == "stop all zones"

    def test_cancel_flow(self, client, controller):
        body = chat(client, "stop all zones").json()

        cancelled = client.post("/api/assistant/cancel", json={"messageId": body["messageId"]})
        assert cancelled.status_code == 200

        confirmed = client.post("/api/assistant/confirm", json={"messageId": body["messageId"]})
        assert confirmed.status_code == 409
        assert controller.calls == []

    def test_invalid_command_is_422(self, client, controller):
        response = chat(client, "start zone 9 for 90 minutes")

        assert response.status_code == 422
        body = response.json()
        assert body["error"]["kind"] == "validation"
        assert body["error"]["message"].endswith("Nothing was changed.")
        assert len(body["parameters"]["validationErrors"]) == 2
        assert controller.calls == []

    def test_empty_message_is_422(self, client):
        assert chat(client, "   ").status_code == 422

    def test_question_without_plan_is_409(self, client):
        response = chat(client, "why do you water so early?")

        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "state"

    def test_question_with_plan(self, client):
        generate(client)
        body = chat(client, "why do you water so early?").json()

        assert body["responseType"] == "answer"
        assert body["intent"] == "unknown"
        assert body["answer"]

    def test_clear_session_drops_pending(self, client):
        body = chat(client, "stop all zones", session_id="kitchen").json()
        client.delete("/api/assistant/sessions/kitchen")

        confirmed = client.post("/api/assistant/confirm", json={"messageId": body["messageId"]})
        assert confirmed.status_code == 409


class TestScheduleEndpoints:
    def test_generate(self, client):
        body = generate(client)

        assert body["success"] is True
        assert body["revision"] == 1
        assert body["localTime"] == "05:10"
        assert body["plan"]["schedule"][0]["events"][0]["startTime"] == "05:25"
        assert body["totalGallons"] == 582.5

    def test_get_schedule(self, client):
        assert client.get("/api/schedule").json()["plan"] is None
        generate(client)

        body = client.get("/api/schedule").json()
        assert body["revision"] == 1
        assert body["timezone"] == "America/Chicago"
        assert len(body["assumedForecast"]) == 7

    def test_generation_failure_keeps_plan(self, client, planner):
        generate(client)

        class Broken:
            name = "broken"

            async def generate(self, request):
                return {"schedule": []}

        planner.backend = Broken()
        response = client.post("/api/schedule/generate")
        assert response.status_code == 502
        assert response.json()["detail"]["kind"] == "schema"
        assert client.get("/api/schedule").json()["revision"] == 1

    def test_usage(self, client):
        assert client.get("/api/schedule/usage").status_code == 409
        generate(client)

        body = client.get("/api/schedule/usage").json()
        assert body["totalGallons"] == 582.5
        assert len(body["days"]) == 7

    def test_toggle_event(self, client):
        generate(client)

        response = client.post("/api/schedule/events/cancel", json={"day": "2025-06-10", "index": 0})
        assert response.status_code == 200
        event = response.json()["plan"]["schedule"][0]["events"][0]
        assert event["isCanceled"] is True
        assert event["adjustment"]["user"] == "admin"

    def test_toggle_elapsed_event_is_409(self, client, clock):
        generate(client)
        clock.set_local("06:00")

        response = client.post("/api/schedule/events/cancel", json={"day": "2025-06-10", "index": 0})
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "timing"

    def test_toggle_unknown_day_is_422(self, client):
        generate(client)
        response = client.post("/api/schedule/events/cancel", json={"day": "2031-01-01", "index": 0})
        assert response.status_code == 422

    def test_chat_modification_and_compensation(self, client):
        generate(client)

        body = chat(client, "cancel the next watering").json()
        assert body["responseType"] == "modification"
        assert body["directChangeSchedule"]["schedule"][0]["events"][0]["isCanceled"] is True
        assert body["followUpQuestion"]
        candidate_id = body["candidateId"]

        accepted = client.post(f"/api/schedule/candidates/{candidate_id}/accept")
        assert accepted.status_code == 200
        assert accepted.json()["revision"] == 3
        assert client.post(f"/api/schedule/candidates/{candidate_id}/accept").status_code == 409

    def test_proactive_check_and_decline(self, client, weather):
        generate(client)
        weather.data = build_weather(probability=60)

        body = client.post("/api/schedule/proactive-check").json()
        assert body["adjustmentProposed"] is True
        candidate_id = body["candidate"]["id"]

        declined = client.post(f"/api/schedule/candidates/{candidate_id}/decline")
        assert declined.json() == {"success": True, "revision": 1}

    def test_disable_system(self, client):
        generate(client)

        response = client.put("/api/schedule/status", json={"status": "Disabled"})
        assert response.json()["systemStatus"] == "Disabled"
        assert client.get("/api/schedule/usage").json()["totalGallons"] == 0
