"""Tests for the import session state machine."""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor

import pytest

from asset_inventory.batch import ErrorPolicy
from asset_inventory.parsers import ParseError
from asset_inventory.persistence import InMemoryAssetStore
from asset_inventory.session import (
    CommitNotAllowedError,
    ImportSession,
    SessionState,
    SessionStateError,
    StaleOperationError,
)
from asset_inventory.transformer import CustomMapping

CSV = (
    b"Device ID,Name,Stage,Vendor,Rack\n"
    b"D1,Pump,Active,ABB,R1\n"
    b"D2,Valve,Active,Siemens,R2\n"
    b"D3,Tank,Unknown Stage,ABB,R3\n"
)


class DeferredExecutor(Executor):
    """Executor that runs submitted work only when run_all() is called."""

    def __init__(self):
        self.queued = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.queued.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        for future, fn, args, kwargs in self.queued:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)
        self.queued = []


@pytest.fixture
def session():
    import_session = ImportSession()
    import_session.load_bytes(CSV, "assets.csv")
    return import_session


class TestUpload:
    """Loading files into the session."""

    def test_load_auto_maps_and_moves_to_mapped(self, session):
        assert session.state is SessionState.MAPPED
        assert session.mapping == {
            "Device ID": "deviceId",
            "Name": "name",
            "Stage": "stage",
            "Vendor": "hardware.vendor",
            "Rack": None,
        }
        assert session.unmapped_headers() == ["Rack"]

    def test_parse_error_keeps_state(self):
        import_session = ImportSession()
        with pytest.raises(ParseError):
            import_session.load_bytes(b"", "assets.csv")
        assert import_session.state is SessionState.UPLOADED
        assert import_session.parsed is None

    def test_upload_only_from_uploaded(self, session):
        with pytest.raises(SessionStateError):
            session.load_bytes(CSV, "assets.csv")

    def test_same_file_keeps_edits(self, session):
        session.set_mapping("Vendor", None)
        session.set_custom_mapping("Rack", "rackPosition")
        session.back()

        session.load_bytes(CSV, "assets.csv")
        assert session.mapping["Vendor"] is None
        assert [c.key for c in session.custom_mappings] == ["rackPosition"]

    def test_changed_file_reruns_automap(self, session):
        session.set_mapping("Vendor", None)
        session.set_custom_mapping("Rack", "rackPosition")
        session.back()

        session.load_bytes(CSV + b"D4,Pipe,Active,ABB,R4\n", "assets.csv")
        assert session.mapping["Vendor"] == "hardware.vendor"
        assert session.custom_mappings == []

    def test_continue_to_mapping(self, session):
        session.back()
        session.continue_to_mapping()
        assert session.state is SessionState.MAPPED

        with pytest.raises(SessionStateError):
            ImportSession().continue_to_mapping()


class TestMappingEdits:
    """Operator edits to the mapping."""

    def test_single_claim_rule(self, session):
        session.set_custom_mapping("Vendor", "supplier")
        assert session.mapping["Vendor"] is None
        assert [c.source_header for c in session.custom_mappings] == ["Vendor"]

        session.set_mapping("Vendor", "hardware.vendor")
        assert session.custom_mappings == []
        assert session.mapping["Vendor"] == "hardware.vendor"

    def test_custom_mapping_replaces_previous_one(self, session):
        session.set_custom_mapping("Rack", "rack")
        session.set_custom_mapping("Rack", "rackPosition", "hardware")
        assert len(session.custom_mappings) == 1
        assert session.custom_mappings[0].target == "hardware.extended.rackPosition"

    def test_remove_custom_mapping(self, session):
        session.set_custom_mapping("Rack", "rack")
        session.remove_custom_mapping("Rack")
        assert session.custom_mappings == []
        assert session.unmapped_headers() == ["Rack"]

    def test_unknown_header_or_path(self, session):
        with pytest.raises(KeyError):
            session.set_mapping("Color", "name")
        with pytest.raises(KeyError):
            session.set_mapping("Vendor", "hardware.color")

    def test_edit_after_preview_drops_preview(self, session):
        session.preview()
        assert session.state is SessionState.PREVIEWED

        session.set_mapping("Vendor", None)
        assert session.state is SessionState.MAPPED
        assert session.preview_outcomes == []

    def test_edit_before_upload(self):
        with pytest.raises(SessionStateError):
            ImportSession().set_mapping("Vendor", None)

    def test_warnings_report_missing_required_fields(self, session):
        assert session.warnings() == []
        session.set_mapping("Name", None)
        assert session.warnings() == ["Required field 'Name' (name) is not mapped"]

    def test_warnings_report_collisions(self):
        import_session = ImportSession()
        import_session.load_bytes(b"Vendor,hardware_vendor\nABB,ABB\n", "a.csv")
        assert any("hardware.vendor" in warning for warning in import_session.warnings())


class TestPreviewAndCommit:
    """Preview, gating and commit."""

    def test_preview(self, session):
        outcomes = session.preview()
        assert [o.is_valid for o in outcomes] == [True, True, False]
        assert session.preview_report().to_dict() == {
            "total": 3,
            "valid_count": 2,
            "invalid_count": 1,
        }

    def test_preview_limit(self):
        import_session = ImportSession(preview_limit=2)
        import_session.load_bytes(CSV, "assets.csv")
        assert len(import_session.preview()) == 2

    def test_commit_requires_preview(self, session):
        assert not session.commit_allowed()
        with pytest.raises(SessionStateError):
            session.commit()

    def test_commit(self, session):
        store = InMemoryAssetStore()
        session.store = store
        session.preview()
        report = session.commit()

        assert session.state is SessionState.COMMITTED
        assert report.to_dict() == {"total": 3, "created": 2, "updated": 0, "failed": 1}
        assert len(store) == 2
        assert [o.is_valid for o in session.commit_outcomes] == [True, True, False]

    def test_stop_on_first_error_blocks_commit(self):
        import_session = ImportSession(error_policy=ErrorPolicy.STOP_ON_FIRST_ERROR)
        import_session.load_bytes(CSV, "assets.csv")
        import_session.preview()

        assert not import_session.commit_allowed()
        with pytest.raises(CommitNotAllowedError):
            import_session.commit()
        assert import_session.state is SessionState.PREVIEWED

    def test_skip_invalid_rows_blocks_when_nothing_is_valid(self, session):
        session.set_mapping("Device ID", None)
        session.preview()
        assert not session.commit_allowed()
        with pytest.raises(CommitNotAllowedError):
            session.commit()


class TestNavigation:
    """back() and reset()."""

    def test_back(self, session):
        session.preview()
        assert session.back() is SessionState.MAPPED
        assert session.back() is SessionState.UPLOADED
        with pytest.raises(SessionStateError):
            session.back()

    def test_back_after_commit_is_refused(self, session):
        session.preview()
        session.commit()
        with pytest.raises(SessionStateError):
            session.back()

    def test_reset_discards_everything(self, session):
        session.set_custom_mapping("Rack", "rack")
        session.preview()
        session.commit()
        session.reset()

        assert session.state is SessionState.UPLOADED
        assert session.parsed is None
        assert session.mapping == {}
        assert session.custom_mappings == []
        assert session.preview_outcomes == []
        assert session.report is None
        assert session.to_dict()["row_count"] == 0


class TestGenerations:
    """Superseded operations never overwrite newer state."""

    def test_stale_preview_is_discarded(self, session):
        started = threading.Event()
        release = threading.Event()
        original_preview = session._run_preview.__func__

        def slow_preview(self, generation):
            started.set()
            release.wait(5)
            return original_preview(self, generation)

        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(slow_preview, session, session._next_generation())
            started.wait(5)
            session.set_mapping("Vendor", None)
            release.set()

            with pytest.raises(StaleOperationError):
                future.result(5)

        assert session.state is SessionState.MAPPED
        assert session.preview_outcomes == []

    def test_submit_preview(self, session):
        with ThreadPoolExecutor(max_workers=1) as executor:
            outcomes = session.submit_preview(executor).result(5)
        assert len(outcomes) == 3
        assert session.state is SessionState.PREVIEWED

    def test_submit_commit(self, session):
        session.preview()
        with ThreadPoolExecutor(max_workers=1) as executor:
            report = session.submit_commit(executor).result(5)
        assert report.created == 2
        assert session.state is SessionState.COMMITTED

    def test_reset_makes_pending_commit_stale(self, session):
        session.preview()
        generation = session._next_generation()
        session.reset()
        with pytest.raises(StaleOperationError):
            session._run_commit(generation)
        assert session.report is None


def test_to_dict(session):
    data = session.to_dict()
    assert data["state"] == "mapped"
    assert data["source_name"] == "assets.csv"
    assert data["row_count"] == 3
    assert data["unmapped_headers"] == ["Rack"]
    assert data["commit_allowed"] is False
    assert data["preview"] is None


class TestSupersededCommit:
    """A commit overtaken by a newer operation leaves no trace."""

    def test_nothing_is_saved(self, session):
        store = InMemoryAssetStore()
        session.store = store
        session.preview()

        executor = DeferredExecutor()
        future = session.submit_commit(executor)
        session.back()
        executor.run_all()

        with pytest.raises(StaleOperationError):
            future.result()
        assert len(store) == 0
        assert session.report is None
        assert session.state is SessionState.MAPPED

    def test_current_commit_is_saved(self, session):
        store = InMemoryAssetStore()
        session.store = store
        session.preview()

        executor = DeferredExecutor()
        future = session.submit_commit(executor)
        executor.run_all()

        assert future.result().created == 2
        assert len(store) == 2


class TestReplaceMappings:
    """Bulk mapping replacement is all or nothing."""

    def test_applies_mapping_and_custom_mappings(self, session):
        session.set_custom_mapping("Rack", "rack")
        session.replace_mappings(
            {"Vendor": None}, [CustomMapping("Vendor", "supplier", "hardware")]
        )
        assert session.mapping["Vendor"] is None
        assert session.mapping["Device ID"] == "deviceId"
        assert [c.source_header for c in session.custom_mappings] == ["Vendor"]

    def test_unknown_path_changes_nothing(self, session):
        session.set_custom_mapping("Rack", "rack")
        session.preview()
        mapping_before = dict(session.mapping)
        custom_before = list(session.custom_mappings)

        with pytest.raises(KeyError):
            session.replace_mappings({"Device ID": None, "Name": "hardware.color"}, [])

        assert session.mapping == mapping_before
        assert session.custom_mappings == custom_before
        assert session.state is SessionState.PREVIEWED

    def test_unknown_custom_header_changes_nothing(self, session):
        mapping_before = dict(session.mapping)
        with pytest.raises(KeyError):
            session.replace_mappings({"Vendor": None}, [CustomMapping("Color", "color")])
        assert session.mapping == mapping_before
