from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from backend.app.storage import SessionStore, new_version_id


class SessionStoreResilienceTests(unittest.TestCase):
    def test_init_recovers_from_empty_state_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            state_file = Path(tmp_dir) / "state.json"
            state_file.write_text("", encoding="utf-8")

            store = SessionStore(state_file)
            session = store.create_session()

            self.assertEqual(store.list_versions(session.id), [])
            parsed = json.loads(state_file.read_text(encoding="utf-8"))
            self.assertIn(session.id, parsed["sessions"])

    def test_init_recovers_from_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            state_file = Path(tmp_dir) / "state.json"
            state_file.write_text("{broken-json", encoding="utf-8")

            store = SessionStore(state_file)

            self.assertIsNone(store.get_session("sess_anything"))
            parsed = json.loads(state_file.read_text(encoding="utf-8"))
            self.assertIn("session_store_version", parsed)

    def test_invalid_sessions_are_dropped_on_load(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            state_file = Path(tmp_dir) / "state.json"
            state_file.write_text(
                json.dumps({"sessions": {"good": {"id": "good"}, "bad": {"versions": "nope"}}}), encoding="utf-8"
            )

            store = SessionStore(state_file)

            self.assertIsNotNone(store.get_session("good"))
            self.assertIsNone(store.get_session("bad"))

    def test_versions_survive_reload(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            state_file = Path(tmp_dir) / "state.json"
            store = SessionStore(state_file)
            session = store.create_session("sess_persisted")
            version = store.create_version(
                session.id, intent="Add a chart", mode="generate", planner_source="heuristic"
            )
            store.save_version(session.id, version)

            reloaded = SessionStore(state_file)

            current = reloaded.get_current_version("sess_persisted")
            self.assertIsNotNone(current)
            self.assertEqual(current.id, version.id)
            self.assertEqual(current.intent, "Add a chart")


class SessionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = SessionStore()
        self.session = self.store.create_session()

    def _save(self, intent: str):
        version = self.store.create_version(self.session.id, intent=intent, mode="generate", planner_source="heuristic")
        return self.store.save_version(self.session.id, version)

    def test_history_is_most_recent_first_with_parent_links(self) -> None:
        first = self._save("one")
        second = self._save("two")

        history = self.store.list_versions(self.session.id)

        self.assertEqual([version.id for version in history], [second.id, first.id])
        self.assertIsNone(first.parent_version_id)
        self.assertEqual(second.parent_version_id, first.id)

    def test_rollback_repoints_without_new_version(self) -> None:
        first = self._save("one")
        self._save("two")

        result = self.store.rollback(self.session.id, first.id)

        self.assertTrue(result.ok)
        self.assertEqual(self.store.get_current_version(self.session.id).id, first.id)
        self.assertEqual(len(self.store.list_versions(self.session.id)), 2)
        third = self._save("three")
        self.assertEqual(third.parent_version_id, first.id)

    def test_rollback_errors(self) -> None:
        self.assertEqual(self.store.rollback("missing", "ver_x").error, "Session not found.")
        self.assertEqual(self.store.rollback(self.session.id, "ver_x").error, "Version not found.")

    def test_latest_tree_defaults_to_baseline(self) -> None:
        tree = self.store.get_latest_tree(self.session.id)
        self.assertEqual(tree.version, 1)
        self.assertEqual(tree.root.id, "page_root")

    def test_add_version_requires_session(self) -> None:
        version = self.store.create_version("missing", intent="x", mode="generate", planner_source="heuristic")
        with self.assertRaises(KeyError):
            self.store.add_version("missing", version)

    def test_get_or_create_reuses_and_creates(self) -> None:
        self.assertIs(self.store.get_or_create_session(self.session.id), self.session)
        created = self.store.get_or_create_session("  sess_custom ")
        self.assertEqual(created.id, "sess_custom")
        self.assertTrue(self.store.get_or_create_session(None).id.startswith("sess_"))

    def test_version_ids_are_unique(self) -> None:
        ids = {new_version_id() for _ in range(50)}
        self.assertEqual(len(ids), 50)
        self.assertTrue(all(version_id.startswith("ver_") for version_id in ids))


if __name__ == "__main__":
    unittest.main()
