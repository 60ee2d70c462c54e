"""Shipment alerts and the new-shipment notification."""

from datetime import timedelta

import pytest

from carrymatch.errors import AlreadyExists, NotFound, Unauthorized, ValidationError
from carrymatch.models.notification import Notification
from carrymatch.models.shipment_alert import ShipmentAlert
from carrymatch.services import alerts, listings
from carrymatch.tasks.jobs import notify as notify_job


def _alert(**overrides):
    body = {"fromCountry": "France", "toCountry": "Algérie"}
    body.update(overrides)
    return body


def _shipment(today, **overrides):
    body = {
        "fromCountry": "France",
        "fromCity": "Paris",
        "toCountry": "Algeria",
        "toCity": "Oran",
        "earliestDate": (today + timedelta(days=8)).isoformat(),
        "latestDate": (today + timedelta(days=12)).isoformat(),
        "weightKg": 3,
        "itemType": "médicaments",
    }
    body.update(overrides)
    return body


class TestCreateAlert:

    def test_cities_are_optional(self, make_user):
        traveler = make_user("Karim", role="traveler")
        a = alerts.create_alert(traveler.id, _alert(fromCity="  ", toCity=None))
        assert a.from_city is None and a.to_city is None
        assert a.is_active is True
        assert a.route_description == "France → Algérie"

    def test_same_route_is_already_exists(self, make_user):
        traveler = make_user("Karim", role="traveler")
        first = alerts.create_alert(traveler.id, _alert())
        # Other spellings of the same countries, still without cities
        with pytest.raises(AlreadyExists) as exc:
            alerts.create_alert(traveler.id, _alert(fromCountry="france", toCountry="Algeria"))
        assert exc.value.details == {"alertId": first.id}

        alerts.create_alert(traveler.id, _alert(toCity="Oran"))
        with pytest.raises(AlreadyExists):
            alerts.create_alert(traveler.id, _alert(toCity="ORAN"))
        assert ShipmentAlert.query.count() == 2

    def test_other_users_may_watch_the_same_route(self, make_user):
        alerts.create_alert(make_user("Karim").id, _alert())
        alerts.create_alert(make_user("Nadia").id, _alert())
        assert ShipmentAlert.query.count() == 2

    def test_invalid_body(self, make_user):
        with pytest.raises(ValidationError) as exc:
            alerts.create_alert(make_user().id, {"fromCountry": "France"})
        assert "toCountry" in exc.value.details

    def test_deactivate_then_recreate_reuses_the_row(self, make_user):
        traveler = make_user("Karim", role="traveler")
        first = alerts.create_alert(traveler.id, _alert())
        alerts.deactivate_alert(traveler.id, first.id)
        assert alerts.list_alerts(traveler.id) == []
        assert [a.id for a in alerts.list_alerts(traveler.id, include_inactive=True)] == [first.id]

        again = alerts.create_alert(traveler.id, _alert())
        assert again.id == first.id
        assert again.is_active is True

    def test_only_owner_deactivates(self, make_user):
        a = alerts.create_alert(make_user("Karim").id, _alert())
        with pytest.raises(Unauthorized):
            alerts.deactivate_alert(make_user("Eve").id, a.id)
        with pytest.raises(NotFound):
            alerts.deactivate_alert(a.user_id, 4242)


class TestMatchingAlerts:

    @pytest.fixture
    def sender(self, make_user):
        return make_user("Sophie", "Martin")

    def test_country_wide_and_city_alerts(self, make_user, make_shipment, sender):
        everywhere = alerts.create_alert(make_user("A").id, _alert())
        to_oran = alerts.create_alert(make_user("B").id, _alert(toCity="Oran"))
        from_paris_district = alerts.create_alert(make_user("C").id, _alert(fromCity="Paris 15e"))
        alerts.create_alert(make_user("D").id, _alert(toCity="Alger"))
        alerts.create_alert(make_user("E").id, _alert(toCountry="Maroc"))

        shipment = make_shipment(sender, to_country="Algeria", to_city="Oran")
        found = alerts.matching_alerts(shipment)
        assert [a.id for a in found] == [everywhere.id, to_oran.id, from_paris_district.id]

    def test_prefix_without_district_does_not_cover(self, make_user, make_shipment, sender):
        alerts.create_alert(make_user("A").id, _alert(fromCity="Saint"))
        shipment = make_shipment(sender, from_city="Saint-Denis")
        assert alerts.matching_alerts(shipment) == []

    def test_own_and_inactive_alerts_are_skipped(self, make_user, make_shipment, sender):
        alerts.create_alert(sender.id, _alert())
        other = alerts.create_alert(make_user("A").id, _alert())
        alerts.deactivate_alert(other.user_id, other.id)
        assert alerts.matching_alerts(make_shipment(sender)) == []

    def test_only_open_shipments(self, make_user, make_shipment, sender):
        alerts.create_alert(make_user("A").id, _alert())
        assert alerts.matching_alerts(make_shipment(sender, status="closed")) == []


class TestNewShipmentNotification:

    def test_creating_a_shipment_notifies_watchers(self, make_user, today):
        sender = make_user("Sophie", "Martin")
        watcher = make_user("Karim", "Benali", role="traveler")
        alerts.create_alert(watcher.id, _alert())
        alerts.create_alert(watcher.id, _alert(toCity="Oran"))
        alerts.create_alert(sender.id, _alert())
        alerts.create_alert(make_user("Nadia").id, _alert(toCity="Alger"))

        s = listings.create_shipment(sender.id, _shipment(today))

        rows = Notification.query.filter_by(kind="new_shipment").all()
        assert [n.user_id for n in rows] == [watcher.id]
        n = rows[0]
        assert n.match_id is None
        assert n.title == "Nouvelle demande d'expédition Paris → Oran"
        assert "Sophie M." in n.body and "3 kg" in n.body
        assert n.payload == {
            "match_id": None,
            "shipment_request_id": s.id,
            "recipient_id": watcher.id,
            "counterpart_name": "Sophie M.",
            "route_description": "Paris → Oran",
            "event": "new_shipment",
        }

    def test_email_links_to_the_shipment(self, app, make_user, today, monkeypatch):
        queued = []

        class FakeTask:
            @staticmethod
            def delay(payload):
                queued.append(payload)

        monkeypatch.setattr(notify_job, "send_match_notification_email", FakeTask())
        app.config["NOTIFY_EMAIL_ENABLED"] = True
        app.config["PUBLIC_APP_URL"] = "https://carrymatch.example"

        sender = make_user("Sophie", "Martin")
        watcher = make_user("Karim", role="traveler")
        alerts.create_alert(watcher.id, _alert())
        s = listings.create_shipment(sender.id, _shipment(today))

        assert len(queued) == 1
        assert queued[0]["recipient_email"] == watcher.email
        subject, text = notify_job.render_match_email(queued[0])
        assert subject == "Nouvelle demande d'expédition Paris → Oran"
        assert text.endswith(f"https://carrymatch.example/shipments/{s.id}")

    def test_match_events_reject_listing_kinds(self, pair):
        from carrymatch.services import lifecycle, notifier

        traveler, _, trip, shipment = pair
        m = lifecycle.propose(traveler.id, trip.id, shipment.id)
        with pytest.raises(ValueError):
            notifier.stage(m, "new_shipment", traveler.id)


class TestAlertApi:

    def test_create_list_and_deactivate(self, as_user, make_user):
        traveler = make_user("Karim", role="traveler")
        resp = as_user("post", "/api/v1/alerts", traveler, json=_alert(fromCity="Lyon"))
        assert resp.status_code == 201
        alert = resp.get_json()["alert"]
        assert alert["fromCity"] == "Lyon"
        assert alert["toCity"] is None

        dup = as_user("post", "/api/v1/alerts", traveler, json=_alert(fromCity="lyon"))
        assert dup.status_code == 409
        assert dup.get_json()["code"] == "already_exists"
        assert dup.get_json()["details"]["alertId"] == alert["id"]

        listed = as_user("get", "/api/v1/alerts", traveler).get_json()["alerts"]
        assert [a["id"] for a in listed] == [alert["id"]]

        off = as_user("post", f"/api/v1/alerts/{alert['id']}/deactivate", traveler).get_json()["alert"]
        assert off["isActive"] is False
        assert as_user("get", "/api/v1/alerts", traveler).get_json()["alerts"] == []
        assert len(as_user("get", "/api/v1/alerts?all=1", traveler).get_json()["alerts"]) == 1

    def test_errors(self, as_user, make_user):
        traveler = make_user("Karim", role="traveler")
        assert as_user("post", "/api/v1/alerts", traveler, json={}).status_code == 400
        alert = as_user("post", "/api/v1/alerts", traveler, json=_alert()).get_json()["alert"]
        assert as_user("post", f"/api/v1/alerts/{alert['id']}/deactivate", make_user("Eve")).status_code == 403
