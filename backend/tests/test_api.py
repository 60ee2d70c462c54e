"""HTTP surface of the v1 API."""

from datetime import timedelta

from carrymatch.security import issue_token


def _trip_body(today, **overrides):
    body = {
        "fromCountry": "France",
        "fromCity": "Paris",
        "toCountry": "Algérie",
        "toCity": "Alger",
        "departureDate": (today + timedelta(days=10)).isoformat(),
        "maxWeightKg": 20,
    }
    body.update(overrides)
    return body


def _shipment_body(today, **overrides):
    body = {
        "fromCountry": "france",
        "fromCity": "Paris 15e",
        "toCountry": "Algeria",
        "toCity": "Algiers",
        "earliestDate": (today + timedelta(days=8)).isoformat(),
        "latestDate": (today + timedelta(days=12)).isoformat(),
        "weightKg": 4.5,
        "itemType": "vêtements",
    }
    body.update(overrides)
    return body


class TestAuth:

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_requires_identity(self, client):
        resp = client.get("/api/v1/compatible/trips")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "unauthenticated"

    def test_unknown_user_is_unauthenticated(self, as_user):
        assert as_user("get", "/api/v1/trips", 777).status_code == 401

    def test_bearer_token(self, client, make_user):
        user = make_user("Sophie")
        token = issue_token(user.id, "sender")
        resp = client.get("/api/v1/trips", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200

    def test_bad_bearer_token(self, client, make_user):
        make_user("Sophie")
        resp = client.get("/api/v1/trips", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


class TestListings:

    def test_create_and_close_trip(self, as_user, make_user, today):
        traveler = make_user("Karim", role="traveler")
        resp = as_user("post", "/api/v1/trips", traveler, json=_trip_body(today))
        assert resp.status_code == 201
        trip = resp.get_json()["trip"]
        assert trip["status"] == "open"
        assert trip["maxWeightKg"] == 20.0

        mine = as_user("get", "/api/v1/trips?mine=1", traveler).get_json()["trips"]
        assert [t["id"] for t in mine] == [trip["id"]]

        other = make_user("Eve")
        assert as_user("post", f"/api/v1/trips/{trip['id']}/close", other).status_code == 403
        closed = as_user("post", f"/api/v1/trips/{trip['id']}/close", traveler).get_json()["trip"]
        assert closed["status"] == "closed"
        assert as_user("post", f"/api/v1/trips/{trip['id']}/close", traveler).status_code == 400

    def test_trip_validation(self, as_user, make_user, today):
        traveler = make_user("Karim", role="traveler")
        body = _trip_body(today, fromCity="  ", arrivalDate=today.isoformat())
        del body["toCountry"]
        resp = as_user("post", "/api/v1/trips", traveler, json=body)
        assert resp.status_code == 400
        payload = resp.get_json()
        assert payload["code"] == "validation_error"
        assert "toCountry" in payload["details"]
        assert "fromCity" in payload["details"]

    def test_shipment_validation(self, as_user, make_user, today):
        sender = make_user("Sophie")
        inverted = _shipment_body(
            today,
            earliestDate=(today + timedelta(days=12)).isoformat(),
            latestDate=(today + timedelta(days=8)).isoformat(),
        )
        assert as_user("post", "/api/v1/shipments", sender, json=inverted).status_code == 400
        assert as_user("post", "/api/v1/shipments", sender, json=_shipment_body(today, weightKg=0)).status_code == 400
        assert as_user("post", "/api/v1/shipments", sender, json=_shipment_body(today)).status_code == 201

    def test_open_listings_exclude_own(self, as_user, make_user, today):
        traveler = make_user("Karim", role="traveler")
        sender = make_user("Sophie")
        as_user("post", "/api/v1/trips", traveler, json=_trip_body(today))
        assert as_user("get", "/api/v1/trips", traveler).get_json()["trips"] == []
        assert len(as_user("get", "/api/v1/trips", sender).get_json()["trips"]) == 1

    def test_missing_listing(self, as_user, make_user):
        resp = as_user("get", "/api/v1/shipments/999", make_user("Sophie"))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "not_found"


class TestMatchFlow:

    def test_full_handoff(self, as_user, make_user, today):
        traveler = make_user("Karim", "Benali", role="traveler")
        sender = make_user("Sophie", "Martin")
        trip_id = as_user("post", "/api/v1/trips", traveler, json=_trip_body(today)).get_json()["trip"]["id"]
        shipment_id = as_user("post", "/api/v1/shipments", sender, json=_shipment_body(today)).get_json()["shipmentRequest"]["id"]

        candidates = as_user("get", "/api/v1/compatible/trips", sender).get_json()["candidates"]
        assert len(candidates) == 1
        assert candidates[0]["tripId"] == trip_id
        assert candidates[0]["matchType"] == "exact"
        assert candidates[0]["trip"]["traveler"]["displayName"] == "Karim B."

        proposal = {"tripId": trip_id, "shipmentRequestId": shipment_id, "notes": "Bonjour"}
        resp = as_user("post", "/api/v1/matches", sender, json=proposal)
        assert resp.status_code == 201
        match = resp.get_json()["match"]
        assert match["status"] == "pending"
        assert match["respondentId"] == traveler.id

        dup = as_user("post", "/api/v1/matches", traveler, json=proposal)
        assert dup.status_code == 409
        assert dup.get_json()["code"] == "already_proposed"
        assert dup.get_json()["details"]["matchId"] == match["id"]

        base = f"/api/v1/matches/{match['id']}"
        assert as_user("post", f"{base}/accept", sender).status_code == 403
        assert as_user("post", f"{base}/accept", traveler).get_json()["match"]["status"] == "accepted"

        steps = [
            (sender, "sender_handed_over"),
            (traveler, "traveler_picked_up"),
            (traveler, "traveler_delivered"),
            (sender, "sender_received"),
        ]
        for user, checkpoint in steps:
            resp = as_user("post", f"{base}/checkpoints/{checkpoint}", user)
            assert resp.status_code == 200, checkpoint
        body = resp.get_json()
        assert body["match"]["status"] == "completed"
        assert body["progress"]["deliveryConfirmed"] is True

        trip = as_user("get", f"/api/v1/trips/{trip_id}", traveler).get_json()["trip"]
        assert trip["status"] == "completed"

    def test_checkpoint_errors(self, as_user, pair):
        traveler, sender, trip, shipment = pair
        proposal = {"tripId": trip.id, "shipmentRequestId": shipment.id}
        match_id = as_user("post", "/api/v1/matches", traveler, json=proposal).get_json()["match"]["id"]
        base = f"/api/v1/matches/{match_id}"

        assert as_user("post", f"{base}/checkpoints/sender_handed_over", sender).status_code == 400
        as_user("post", f"{base}/accept", sender)
        assert as_user("post", f"{base}/checkpoints/traveler_picked_up", traveler).status_code == 400
        assert as_user("post", f"{base}/checkpoints/sender_handed_over", traveler).status_code == 403

    def test_reject_and_visibility(self, as_user, pair, make_user):
        traveler, sender, trip, shipment = pair
        proposal = {"tripId": trip.id, "shipmentRequestId": shipment.id}
        match_id = as_user("post", "/api/v1/matches", traveler, json=proposal).get_json()["match"]["id"]

        assert as_user("get", f"/api/v1/matches/{match_id}", make_user("Eve")).status_code == 403
        assert as_user("post", f"/api/v1/matches/{match_id}/reject", sender).get_json()["match"]["status"] == "rejected"
        assert as_user("post", f"/api/v1/matches/{match_id}/accept", sender).status_code == 404

        listed = as_user("get", "/api/v1/matches?status=rejected", traveler).get_json()["matches"]
        assert [m["id"] for m in listed] == [match_id]

    def test_invalid_proposal_body(self, as_user, pair):
        resp = as_user("post", "/api/v1/matches", pair[0], json={"tripId": "abc"})
        assert resp.status_code == 400
        assert set(resp.get_json()["details"]) == {"tripId", "shipmentRequestId"}

    def test_check_pair(self, as_user, pair):
        traveler, _, trip, shipment = pair
        resp = as_user("get", f"/api/v1/compatible/check?tripId={trip.id}&shipmentRequestId={shipment.id}", traveler)
        body = resp.get_json()
        assert body["senderView"]["matchType"] == "exact"
        assert body["travelerView"]["matchType"] == "exact"
        assert as_user("get", "/api/v1/compatible/check?tripId=x", traveler).status_code == 400


class TestMessagesAndNotifications:

    def test_messages_notify_counterpart(self, as_user, pair):
        traveler, sender, trip, shipment = pair
        proposal = {"tripId": trip.id, "shipmentRequestId": shipment.id}
        match_id = as_user("post", "/api/v1/matches", traveler, json=proposal).get_json()["match"]["id"]

        resp = as_user("post", f"/api/v1/matches/{match_id}/messages", sender, json={"content": " Bonjour ! "})
        assert resp.status_code == 201
        assert resp.get_json()["message"]["content"] == "Bonjour !"
        assert as_user("post", f"/api/v1/matches/{match_id}/messages", sender, json={"content": "  "}).status_code == 400

        msgs = as_user("get", f"/api/v1/matches/{match_id}/messages", traveler).get_json()["messages"]
        assert [m["senderId"] for m in msgs] == [sender.id]

        notes = as_user("get", "/api/v1/notifications", traveler).get_json()
        assert [n["kind"] for n in notes["notifications"]] == ["new_message"]
        assert notes["unread"] == 1

        assert as_user("get", "/api/v1/notifications/unread-count", sender).get_json() == {"unread": 1}

    def test_read_receipts(self, as_user, pair):
        traveler, sender, trip, shipment = pair
        proposal = {"tripId": trip.id, "shipmentRequestId": shipment.id}
        match_id = as_user("post", "/api/v1/matches", traveler, json=proposal).get_json()["match"]["id"]
        as_user("post", f"/api/v1/matches/{match_id}/messages", traveler, json={"content": "Dispo ?"})

        notes = as_user("get", "/api/v1/notifications", sender).get_json()["notifications"]
        assert len(notes) == 2
        first = notes[0]["id"]

        assert as_user("patch", f"/api/v1/notifications/{first}/read", traveler).status_code == 403
        marked = as_user("patch", f"/api/v1/notifications/{first}/read", sender).get_json()["notification"]
        assert marked["read"] is True
        assert as_user("get", "/api/v1/notifications/unread-count", sender).get_json() == {"unread": 1}

        resp = as_user("post", "/api/v1/notifications/read-all", sender).get_json()
        assert resp["updated"] == 1
        assert as_user("get", "/api/v1/notifications/unread-count", sender).get_json() == {"unread": 0}
