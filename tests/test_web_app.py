import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from cabin_reservations import ReservationYamlRepository, Role, User, YamlUserDirectory
from cabin_reservations.web_app import USER_HEADER, create_app


class TestWebApp(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        directory = YamlUserDirectory(self.data_dir)
        directory.save_user(User("alice", "Alice"))
        directory.save_user(User("bob", "Bob"))
        directory.save_user(User("root", "Admin", Role.ADMIN))

        app = create_app(self.data_dir, now_provider=lambda: datetime(2024, 7, 2, 8, 0))
        self.client = app.test_client()

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def _as(self, user_id: str) -> dict[str, str]:
        return {USER_HEADER: user_id}

    def _create(self, user_id: str, **payload) -> dict:
        response = self.client.post("/api/reservations", json=payload, headers=self._as(user_id))
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()["reservation"]

    def test_requests_without_identity_are_rejected(self) -> None:
        self.assertEqual(self.client.get("/api/reservations").status_code, 401)
        self.assertEqual(self.client.get("/api/reservations", headers=self._as("mallory")).status_code, 401)

    def test_create_primary_then_backup(self) -> None:
        primary = self._create("alice", **{"from": "2024-07-01", "to": "2024-07-05", "purpose": "Summer"})
        backup = self._create("bob", **{"from": "2024-07-03", "to": "2024-07-10", "purpose": "Fishing"})

        self.assertEqual(primary["status"], "primary")
        self.assertEqual(primary["username"], "Alice")
        self.assertEqual(backup["status"], "backup")
        self.assertEqual(backup["conflicts_with_id"], primary["reservation_id"])

        listing = self.client.get("/api/reservations", headers=self._as("bob")).get_json()
        self.assertEqual(len(listing["reservations"]), 2)

        stored = ReservationYamlRepository(self.data_dir).list()
        self.assertEqual(len(stored), 2)

    def test_soft_status_in_payload(self) -> None:
        soft = self._create("alice", **{"from": "2024-08-01", "to": "2024-08-03", "purpose": "Maybe", "status": "soft"})
        self.assertEqual(soft["status"], "soft")
        self.assertIsNone(soft["conflicts_with_id"])

    def test_soft_flag_requires_a_real_boolean(self) -> None:
        not_soft = self._create("alice", **{"from": "2024-08-01", "to": "2024-08-03", "purpose": "Trip", "soft": "false"})
        self.assertEqual(not_soft["status"], "primary")

        soft = self._create("bob", **{"from": "2024-09-01", "to": "2024-09-03", "purpose": "Maybe", "soft": True})
        self.assertEqual(soft["status"], "soft")

    def test_validation_errors_map_to_400(self) -> None:
        response = self.client.post(
            "/api/reservations",
            json={"from": "2024-07-05", "to": "2024-07-01", "purpose": "Summer"},
            headers=self._as("alice"),
        )
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["error"]["kind"], "invalid_range")

        response = self.client.post(
            "/api/reservations",
            json={"from": "2024-07-01", "to": "2024-07-05", "purpose": " "},
            headers=self._as("alice"),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["field"], "purpose")

    def test_edit_by_other_member_is_forbidden(self) -> None:
        created = self._create("alice", **{"from": "2024-07-01", "to": "2024-07-05", "purpose": "Summer"})

        response = self.client.put(
            f"/api/reservations/{created['reservation_id']}",
            json={"purpose": "Hijacked"},
            headers=self._as("bob"),
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.put(
            f"/api/reservations/{created['reservation_id']}",
            json={"purpose": "Summer holiday", "handover_note": "Keys under the mat"},
            headers=self._as("alice"),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["reservation"]["handover_note"], "Keys under the mat")

    def test_conflicting_primary_edit_returns_409(self) -> None:
        self._create("alice", **{"from": "2024-07-01", "to": "2024-07-05", "purpose": "Summer"})
        later = self._create("bob", **{"from": "2024-07-10", "to": "2024-07-12", "purpose": "Fishing"})

        response = self.client.put(
            f"/api/reservations/{later['reservation_id']}",
            json={"from": "2024-07-04"},
            headers=self._as("bob"),
        )
        self.assertEqual(response.status_code, 409)

    def test_delete_flow(self) -> None:
        created = self._create("alice", **{"from": "2024-07-01", "to": "2024-07-05", "purpose": "Summer"})

        missing = self.client.post("/api/reservations/delete", json={}, headers=self._as("alice"))
        self.assertEqual(missing.status_code, 400)

        unknown = self.client.post("/api/reservations/delete", json={"reservation_id": "nope"}, headers=self._as("alice"))
        self.assertEqual(unknown.status_code, 404)

        forbidden = self.client.post(
            "/api/reservations/delete",
            json={"reservation_id": created["reservation_id"]},
            headers=self._as("bob"),
        )
        self.assertEqual(forbidden.status_code, 403)

        deleted = self.client.post(
            "/api/reservations/delete",
            json={"reservation_id": created["reservation_id"]},
            headers=self._as("root"),
        )
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(ReservationYamlRepository(self.data_dir).list(), [])

    def test_assign_flow(self) -> None:
        created = self._create("alice", **{"from": "2024-07-01", "to": "2024-07-05", "purpose": "Summer"})
        path = f"/api/reservations/{created['reservation_id']}/assign"

        self.assertEqual(self.client.post(path, json={"new_owner_id": "bob"}, headers=self._as("alice")).status_code, 403)
        self.assertEqual(self.client.post(path, json={"new_owner_id": "root"}, headers=self._as("root")).status_code, 400)
        self.assertEqual(self.client.post(path, json={"new_owner_id": "ghost"}, headers=self._as("root")).status_code, 404)

        eligible = self.client.get(
            f"/api/reservations/{created['reservation_id']}/eligible-owners",
            headers=self._as("root"),
        ).get_json()
        self.assertEqual([user["user_id"] for user in eligible["users"]], ["bob"])

        response = self.client.post(path, json={"new_owner_id": "bob"}, headers=self._as("root"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["reservation"]["owner_id"], "bob")
        self.assertEqual(response.get_json()["reservation"]["username"], "Bob")

    def test_admin_bulk_delete_of_user_reservations(self) -> None:
        self._create("alice", **{"from": "2024-07-01", "to": "2024-07-05", "purpose": "Summer"})
        self._create("bob", **{"from": "2024-07-10", "to": "2024-07-12", "purpose": "Fishing"})

        self.assertEqual(self.client.delete("/api/users/alice/reservations", headers=self._as("bob")).status_code, 403)

        response = self.client.delete("/api/users/alice/reservations", headers=self._as("root"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["deleted"], 1)

    def test_dashboard_and_calendar_stats(self) -> None:
        current = self._create("alice", **{"from": "2024-07-01", "to": "2024-07-05", "purpose": "Summer"})
        self._create("bob", **{"from": "2024-07-10", "to": "2024-07-12", "purpose": "Fishing"})

        dashboard = self.client.get("/api/dashboard", headers=self._as("bob")).get_json()
        self.assertEqual(dashboard["current"]["reservation_id"], current["reservation_id"])
        self.assertEqual(len(dashboard["upcoming"]), 1)

        stats = self.client.get("/api/calendar/stats?year=2024&month=7", headers=self._as("bob")).get_json()
        self.assertEqual(stats["stats"]["booked_days"], 8)

        bad = self.client.get("/api/calendar/stats?year=abc", headers=self._as("bob"))
        self.assertEqual(bad.status_code, 400)


if __name__ == "__main__":
    unittest.main()
