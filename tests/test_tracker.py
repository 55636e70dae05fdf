"""Tests for change tracking and commit payloads."""

from app.features.permissions.engine.tracker import BaselineTracker, OverrideTracker


JOB = frozenset({"s:1", "ss:1"})


class TestBaselineTracker:
    """Test job baseline snapshots and payloads."""

    def test_has_changes(self):
        tracker = BaselineTracker({"s:1"})
        assert not tracker.has_changes({"s:1"})
        assert tracker.has_changes({"s:1", "ss:1"})
        assert tracker.has_changes(set())

    def test_has_changes_within(self):
        tracker = BaselineTracker({"s:1"})
        assert not tracker.has_changes_within({"s:1", "s:2"}, ["s:1", "s:3"])
        assert tracker.has_changes_within({"s:1", "s:2"}, ["s:2"])

    def test_payload_has_one_ref_per_row(self):
        tracker = BaselineTracker(set())
        rows = tracker.payload({"sss:1", "s:2", "ss:1"})
        assert rows == [
            {"service_id": 2, "sub_service_id": None, "sub_sub_service_id": None},
            {"service_id": None, "sub_service_id": 1, "sub_sub_service_id": None},
            {"service_id": None, "sub_service_id": None, "sub_sub_service_id": 1},
        ]

    def test_advance(self):
        tracker = BaselineTracker({"s:1"})
        tracker.advance({"s:2"})
        assert tracker.snapshot == frozenset({"s:2"})
        assert not tracker.has_changes({"s:2"})


class TestOverrideDiff:
    """Test the minimal insert/update/delete diff."""

    def test_diff_categories(self):
        saved = {"ss:1": True, "sss:1": True, "s:2": True}
        current = {"ss:1": False, "sss:2": True}
        diff = OverrideTracker(saved).diff(current, JOB)

        assert diff.inserted == [("sss:2", True)]
        assert diff.updated == [("ss:1", True, False)]
        assert diff.deleted == [("s:2", True), ("sss:1", True)]

    def test_rows(self):
        saved = {"ss:1": True, "s:2": True}
        current = {"ss:1": False, "sss:2": True}
        diff = OverrideTracker(saved).diff(current, JOB)

        assert diff.insert_rows("u-1") == [
            {"user_id": "u-1", "service_id": None, "sub_service_id": None, "sub_sub_service_id": 2, "is_allowed": True},
            {"user_id": "u-1", "service_id": None, "sub_service_id": 1, "sub_sub_service_id": None, "is_allowed": False},
        ]
        assert diff.delete_rows("u-1") == [
            {"user_id": "u-1", "service_id": None, "sub_service_id": 1, "sub_sub_service_id": None},
            {"user_id": "u-1", "service_id": 2, "sub_service_id": None, "sub_sub_service_id": None},
        ]

    def test_replaying_diff_reconstructs_current(self):
        saved = {"ss:1": True, "sss:1": True, "s:2": True, "s:3": True}
        current = {"ss:1": False, "sss:2": True, "s:3": True, "s:1": False}
        diff = OverrideTracker(saved).diff(current, JOB)
        assert diff.apply_to(saved) == current

    def test_empty_when_unchanged(self):
        saved = {"s:1": False, "sss:3": True}
        tracker = OverrideTracker(saved)
        assert tracker.diff(dict(saved), JOB).is_empty
        assert not tracker.has_changes(dict(saved))

    def test_values_matching_job_are_not_written(self):
        tracker = OverrideTracker({"s:1": True})
        diff = tracker.diff({"s:2": False}, JOB)
        assert diff.is_empty

    def test_has_changes_within(self):
        tracker = OverrideTracker({"s:2": True})
        current = {"s:2": True, "s:3": True}
        assert not tracker.has_changes_within(current, ["s:1", "s:2"])
        assert tracker.has_changes_within(current, ["s:3"])

    def test_snapshot_is_read_only_copy(self):
        initial = {"s:2": True}
        tracker = OverrideTracker(initial)
        initial["s:3"] = True
        assert dict(tracker.snapshot) == {"s:2": True}
        tracker.advance({"s:3": True})
        assert dict(tracker.snapshot) == {"s:3": True}
