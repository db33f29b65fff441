import unittest
import threading

from workplace_pulse.exceptions import ParticipantNotFoundError, SessionNotFoundError
from workplace_pulse.models import Participant, Session
from workplace_pulse.repository import InMemoryRepository


class TestInMemorySessions(unittest.TestCase):
    def setUp(self):
        self.repo = InMemoryRepository()
        self.repo.insert_session(Session("s1", "ABC123", "Offsite", slug="offsite-abc123"))

    def test_lookup_by_code_is_case_insensitive(self):
        self.assertEqual(self.repo.fetch_session("abc123").session_id, "s1")
        self.assertIsNone(self.repo.fetch_session("ZZZ"))

    def test_lookup_by_slug_and_id(self):
        self.assertEqual(self.repo.fetch_session_by_slug("offsite-abc123").code, "ABC123")
        self.assertEqual(self.repo.fetch_session_by_id("s1").name, "Offsite")
        self.assertIsNone(self.repo.fetch_session_by_id("nope"))

    def test_insert_rejects_duplicates(self):
        duplicates = [
            Session("s1", "NEW111", "Dup id"),
            Session("s2", "abc123", "Dup code"),
            Session("s3", "NEW333", "Dup slug", slug="offsite-abc123"),
        ]
        for session in duplicates:
            with self.subTest(name=session.name):
                with self.assertRaises(ValueError):
                    self.repo.insert_session(session)

    def test_returned_records_are_copies(self):
        self.repo.fetch_session_by_id("s1").name = "Changed"
        self.assertEqual(self.repo.fetch_session_by_id("s1").name, "Offsite")

    def test_update_session(self):
        updated = self.repo.update_session("s1", {"name": "Retreat", "is_active": False})
        self.assertEqual(updated.name, "Retreat")
        self.assertFalse(self.repo.fetch_session_by_id("s1").is_active)

    def test_update_rejects_unknown_fields_and_sessions(self):
        with self.assertRaises(ValueError):
            self.repo.update_session("s1", {"colour": "red"})
        with self.assertRaises(SessionNotFoundError):
            self.repo.update_session("missing", {"name": "x"})

    def test_delete_cascades_to_participants(self):
        self.repo.insert_participant("s1", Participant("p1", "s1"))
        self.repo.insert_participant("s1", Participant("p2", "s1"))

        deleted = self.repo.delete_session("s1")

        self.assertEqual(deleted.session_id, "s1")
        self.assertEqual(self.repo.fetch_participants("s1"), [])
        self.assertIsNone(self.repo.fetch_participant("p1"))
        self.assertIsNone(self.repo.delete_session("s1"))


class TestInMemoryParticipants(unittest.TestCase):
    def setUp(self):
        self.repo = InMemoryRepository()
        self.repo.insert_session(Session("s1", "ABC123", "Offsite"))

    def test_insert_and_fetch(self):
        self.repo.insert_participant("s1", Participant("p1", "other", name="Ada"))

        (stored,) = self.repo.fetch_participants("s1")
        self.assertEqual(stored.session_id, "s1")
        self.assertEqual(stored.name, "Ada")

    def test_insert_requires_session_and_unique_id(self):
        with self.assertRaises(SessionNotFoundError):
            self.repo.insert_participant("missing", Participant("p1", "missing"))
        self.repo.insert_participant("s1", Participant("p1", "s1"))
        with self.assertRaises(ValueError):
            self.repo.insert_participant("s1", Participant("p1", "s1"))

    def test_update_participant(self):
        self.repo.insert_participant("s1", Participant("p1", "s1"))

        updated = self.repo.update_participant("p1", {"responses": {1: "yes"}})

        self.assertEqual(updated.responses, {1: "yes"})
        with self.assertRaises(ValueError):
            self.repo.update_participant("p1", {"session_id": "s9"})
        with self.assertRaises(ParticipantNotFoundError):
            self.repo.update_participant("ghost", {"name": "x"})

    def test_delete_participant(self):
        self.repo.insert_participant("s1", Participant("p1", "s1"))
        self.assertEqual(self.repo.delete_participant("p1").participant_id, "p1")
        self.assertIsNone(self.repo.delete_participant("p1"))

    def test_concurrent_inserts(self):
        num_threads = 10
        per_thread = 20

        def worker(thread_idx):
            for i in range(per_thread):
                self.repo.insert_participant("s1", Participant(f"p{thread_idx}-{i}", "s1"))

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(self.repo.fetch_participants("s1")), num_threads * per_thread)


if __name__ == "__main__":
    unittest.main()
