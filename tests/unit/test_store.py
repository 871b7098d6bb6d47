"""
Unit tests for the SQLite state store.
"""

from datetime import datetime

from pantry.state import HistoryEntry, ResourceState, Store


def make_state(resource_id="file:/app_setup.txt", status="converged"):
    return ResourceState(
        id=resource_id,
        type="file",
        desired_state={"exists": True, "mode": 0o777},
        actual_state={"exists": True, "mode": 0o777},
        applied_at=datetime(2026, 1, 2, 3, 4, 5),
        applied_by="root",
        hostname="web1",
        config_file="app_setup.py",
        status=status,
    )


class TestStore:

    def test_save_and_get_resource(self, store):
        store.save_resource(make_state())

        state = store.get_resource("file:/app_setup.txt")

        assert state.status == "converged"
        assert state.desired_state == {"exists": True, "mode": 0o777}
        assert state.applied_at == datetime(2026, 1, 2, 3, 4, 5)

    def test_save_replaces(self, store):
        store.save_resource(make_state())
        store.save_resource(make_state(status="compliant"))

        assert [s.status for s in store.list_resources()] == ["compliant"]

    def test_missing_resource(self, store):
        assert store.get_resource("pkg:nope") is None

    def test_history_newest_first(self, store):
        for minute in (1, 2, 3):
            store.add_history(HistoryEntry(
                timestamp=datetime(2026, 1, 1, 0, minute),
                resource_id="pkg:cron",
                action="create",
                user="root",
                hostname="web1",
                success=minute != 2,
                changes={"exists": {"from": False, "to": True}},
                error="boom" if minute == 2 else None,
            ))

        history = store.get_history("pkg:cron", limit=2)

        assert [h.timestamp.minute for h in history] == [3, 2]
        assert history[1].error == "boom"
        assert not history[1].success

    def test_values(self, store):
        assert store.get_value("k") is None
        store.save_value("k", "uuid", "v1")

        assert store.get_value("k", "uuid") == "v1"
        assert [v.key for v in store.list_values()] == ["k"]
        assert store.forget_value("k")
        assert not store.forget_value("k")

    def test_default_path_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PANTRY_STATE_DB", str(tmp_path / "env.db"))

        with Store() as store:
            assert store.db_path == str(tmp_path / "env.db")
