import threading
import time
import unittest
from datetime import date, datetime

from cabin_reservations import (
    CabinReservationService,
    InMemoryReservationRepository,
    InMemoryUserDirectory,
    InvalidRangeError,
    InvalidTarget,
    PermissionDenied,
    ReservationStatus,
    Role,
    User,
    UserNotFound,
    ValidationError,
)
from cabin_reservations.booking import find_overlapping_primaries


class SlowReservationRepository(InMemoryReservationRepository):
    """Widens the window between the conflict check and the insert."""

    def list(self):
        records = super().list()
        time.sleep(0.01)
        return records


class TestCabinReservationService(unittest.TestCase):
    def setUp(self) -> None:
        self.repository = InMemoryReservationRepository()
        self.users = InMemoryUserDirectory(
            [User("alice", "Alice"), User("bob", "Bob"), User("root", "Admin", Role.ADMIN)]
        )
        self.service = CabinReservationService(
            self.repository,
            self.users,
            now_provider=lambda: datetime(2024, 7, 2, 8, 0),
        )

    def test_booking_scenario_with_backup_and_no_promotion(self) -> None:
        a = self.service.create_reservation("alice", "2024-07-01", "2024-07-05", "Summer")
        b = self.service.create_reservation("bob", "2024-07-03", "2024-07-10", "Fishing")

        self.assertIs(a.status, ReservationStatus.PRIMARY)
        self.assertIs(b.status, ReservationStatus.BACKUP)
        self.assertEqual(b.conflicts_with_id, a.reservation_id)

        self.assertTrue(self.service.delete_reservation(a.reservation_id, "alice"))
        remaining = self.service.get_reservation(b.reservation_id)
        self.assertIs(remaining.status, ReservationStatus.BACKUP)

    def test_soft_flag_creates_soft_reservation(self) -> None:
        self.service.create_reservation("alice", "2024-08-01", "2024-08-03", "Maybe", soft=True)
        primary = self.service.create_reservation("bob", "2024-08-01", "2024-08-03", "Family")

        self.assertIs(primary.status, ReservationStatus.PRIMARY)

    def test_create_validates_dates_and_purpose(self) -> None:
        with self.assertRaises(InvalidRangeError):
            self.service.create_reservation("alice", "2024-07-05", "2024-07-01", "Summer")
        with self.assertRaises(InvalidRangeError):
            self.service.create_reservation("alice", "07/01/2024", "2024-07-05", "Summer")
        with self.assertRaises(ValidationError):
            self.service.create_reservation("alice", "2024-07-01", "2024-07-05", None)
        self.assertEqual(self.service.list_reservations(), [])

    def test_edit_accepts_plain_mapping(self) -> None:
        created = self.service.create_reservation("alice", "2024-07-01", "2024-07-05", "Summer")
        updated = self.service.edit_reservation(
            created.reservation_id,
            "alice",
            {"to": "2024-07-06", "handover_note": "Left milk in fridge", "notes": None},
        )

        self.assertEqual(updated.end, date(2024, 7, 6))
        self.assertEqual(updated.handover_note, "Left milk in fridge")

    def test_assign_rejects_admin_target(self) -> None:
        created = self.service.create_reservation("alice", "2024-07-01", "2024-07-05", "Summer")
        with self.assertRaises(InvalidTarget):
            self.service.assign_reservation(created.reservation_id, "root", "root")

        assigned = self.service.assign_reservation(created.reservation_id, "root", "bob")
        self.assertEqual(assigned.owner_id, "bob")

    def test_unknown_requester_is_rejected_before_any_write(self) -> None:
        created = self.service.create_reservation("alice", "2024-07-01", "2024-07-05", "Summer")

        with self.assertRaises(UserNotFound):
            self.service.edit_reservation(created.reservation_id, "ghost", {"purpose": "Hijack"})
        with self.assertRaises(UserNotFound):
            self.service.delete_reservation(created.reservation_id, "ghost")
        with self.assertRaises(UserNotFound):
            self.service.assign_reservation(created.reservation_id, "ghost", "bob")
        with self.assertRaises(UserNotFound):
            self.service.delete_user_reservations("alice", "ghost")

        self.assertEqual(self.service.list_reservations(), [created])

    def test_requester_role_comes_from_the_directory(self) -> None:
        created = self.service.create_reservation("alice", "2024-07-01", "2024-07-05", "Summer")

        with self.assertRaises(PermissionDenied):
            self.service.edit_reservation(created.reservation_id, "bob", {"purpose": "Fishing"})
        with self.assertRaises(PermissionDenied):
            self.service.assign_reservation(created.reservation_id, "bob", "bob")
        with self.assertRaises(PermissionDenied):
            self.service.delete_user_reservations("alice", "bob")

        updated = self.service.edit_reservation(created.reservation_id, "root", {"purpose": "Family week"})
        self.assertEqual(updated.purpose, "Family week")

    def test_dashboard_and_handover_note(self) -> None:
        first = self.service.create_reservation("alice", "2024-07-01", "2024-07-03", "Summer", handover_note="Boat oars in attic")
        second = self.service.create_reservation("bob", "2024-07-10", "2024-07-12", "Fishing")

        summary = self.service.dashboard()

        self.assertEqual(summary["today"], "2024-07-02")
        self.assertEqual(summary["current"].reservation_id, first.reservation_id)
        self.assertEqual([record.reservation_id for record in summary["upcoming"]], [second.reservation_id])
        self.assertEqual(self.service.incoming_handover_note(second.reservation_id), "Boat oars in attic")

    def test_delete_user_reservations_counts_removed(self) -> None:
        self.service.create_reservation("alice", "2024-07-01", "2024-07-03", "Summer")
        self.service.create_reservation("alice", "2024-07-05", "2024-07-06", "Weekend")

        self.assertEqual(self.service.delete_user_reservations("alice", "root"), 2)
        self.assertEqual(self.service.list_reservations(), [])


class TestConcurrentCreates(unittest.TestCase):
    def test_parallel_overlapping_creates_yield_single_primary(self) -> None:
        repository = SlowReservationRepository()
        service = CabinReservationService(repository, InMemoryUserDirectory())
        barrier = threading.Barrier(6)
        errors: list[BaseException] = []

        def book(owner: str) -> None:
            barrier.wait()
            try:
                service.create_reservation(owner, "2024-07-01", "2024-07-05", "Summer")
            except BaseException as error:
                errors.append(error)

        threads = [threading.Thread(target=book, args=(f"user{index}",)) for index in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        records = repository.list()
        statuses = sorted(record.status.value for record in records)
        self.assertEqual(statuses, ["backup"] * 5 + ["primary"])
        self.assertEqual(find_overlapping_primaries(records), [])


if __name__ == "__main__":
    unittest.main()
