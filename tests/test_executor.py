"""Tests for confirming groups and folder rules."""

from unittest import mock

import pytest

from conftest import FakeDeleter, make_record
from media_dedup.core.errors import DataUnavailableError, InvalidConfirmError
from media_dedup.core.executor import TrashExecutor, resolve_folder_rule_targets
from media_dedup.core.grouper import Grouper
from media_dedup.core.models import Decision, FolderRule, FolderSuperGroup, MatchKind
from media_dedup.core.service import DuplicateService
from media_dedup.core.session import ResolutionSession, SessionState
from media_dedup.platforms.memory import InMemoryMetadataSource

KEEP_FOLDER = "vacation_jpg"
COPY_FOLDER = "vacation_JPG_copy"


@pytest.fixture
def library():
    """Two groups split between a and b, plus one group inside misc."""
    return InMemoryMetadataSource(
        [
            make_record(1, "a", content_hash="x", size_bytes=300),
            make_record(2, "b", content_hash="x", size_bytes=300),
            make_record(3, "a", content_hash="y", size_bytes=200),
            make_record(4, "b", content_hash="y", size_bytes=200),
            make_record(5, "misc", content_hash="z", size_bytes=100),
            make_record(6, "misc", content_hash="z", size_bytes=100),
            make_record(7, "misc", content_hash="z", size_bytes=100),
        ]
    )


@pytest.fixture
def session(library):
    session = ResolutionSession(Grouper(library), MatchKind.EXACT)
    session.load()
    return session


@pytest.fixture
def mirrored_library(tmp_path):
    """Five photos copied from one folder into another, plus an unrelated group."""
    records = []
    for n in range(5):
        records.append(
            make_record(n + 1, KEEP_FOLDER, f"IMG_{n}.jpg", content_hash=f"h{n}", size_bytes=1000 - n)
        )
        records.append(
            make_record(n + 11, COPY_FOLDER, f"IMG_{n}.jpg", content_hash=f"h{n}", size_bytes=1000 - n)
        )
    records.append(make_record(21, "misc", content_hash="m", size_bytes=10))
    records.append(make_record(22, "misc", content_hash="m", size_bytes=10))
    return InMemoryMetadataSource(records, library_root=tmp_path)


def _service(source, trash_errors=None):
    """DuplicateService with a trash backend that fails the given ids."""
    errors = trash_errors or {}
    trasher = mock.Mock()
    trasher.trash.side_effect = lambda path, record: errors.get(record.id)
    return DuplicateService(source, trasher)


class OfflineAfterTrash(FakeDeleter):
    """Removes the trashed rows, then takes the source offline."""

    def __init__(self, source):
        super().__init__()
        self.source = source

    def trash_files(self, file_ids):
        outcomes = super().trash_files(file_ids)
        self.source.remove_records(file_ids)
        self.source.available = False
        return outcomes


class TestConfirmGroup:
    """Test confirming a single group."""

    def test_trashes_marked_files_and_removes_group(self, session):
        deleter = FakeDeleter()

        result = TrashExecutor(deleter).confirm_group(session, 2)

        assert deleter.calls == [[6, 7]]
        assert result.trashed == 2
        assert result.groups_resolved == 1
        assert session.group(2) is None
        assert session.resolved_count == 1
        assert [g.group_index for g in session.groups] == [0, 1]

    def test_partial_failure_still_resolves(self, session):
        """Files that were trashed stay trashed; the group counts as resolved."""
        deleter = FakeDeleter(fail={6: "Permission denied"})

        result = TrashExecutor(deleter).confirm_group(session, 2)

        assert result.trashed == 1
        assert [(f.file_id, f.error) for f in result.failures] == [(6, "Permission denied")]
        assert session.group(2) is None
        assert session.resolved_count == 1

    def test_nothing_to_trash_advances(self, session):
        """A group where every file is kept needs no delete call."""
        session.toggle_decision(0, 2, Decision.KEEP)
        deleter = FakeDeleter()

        result = TrashExecutor(deleter).confirm_group(session, 0)

        assert deleter.calls == []
        assert result.outcomes == ()
        assert session.cursor == 1
        assert session.group(0) is not None
        assert session.resolved_count == 0

    def test_invalid_decisions_rejected(self, session):
        session.toggle_decision(0, 1, Decision.TRASH)
        deleter = FakeDeleter()

        with pytest.raises(InvalidConfirmError):
            TrashExecutor(deleter).confirm_group(session, 0)

        assert deleter.calls == []
        assert session.group(0) is not None

    def test_stale_group_is_ignored(self, session):
        deleter = FakeDeleter()

        result = TrashExecutor(deleter).confirm_group(session, 42)

        assert result.outcomes == ()
        assert deleter.calls == []

    def test_result_dropped_after_reload(self, session):
        """Outcomes arriving after the session restarted do not touch it."""

        class ReloadingDeleter(FakeDeleter):
            def trash_files(self, file_ids):
                session.begin_load()
                return super().trash_files(file_ids)

        result = TrashExecutor(ReloadingDeleter()).confirm_group(session, 0)

        assert result.trashed == 1
        assert session.group(0) is not None
        assert session.resolved_count == 0

    def test_source_offline_during_refill_clears_page(self, library):
        session = ResolutionSession(Grouper(library), MatchKind.EXACT, per_page=1)
        session.load()

        with pytest.raises(DataUnavailableError):
            TrashExecutor(OfflineAfterTrash(library)).confirm_group(session, 0)

        assert session.groups == []
        assert session.decisions == {}
        assert session.resolved_count == 1


class TestPagedResolution:
    """Test confirming groups across more than one page."""

    @pytest.fixture
    def service(self, library, tmp_path):
        return _service(InMemoryMetadataSource(library.list_records(), library_root=tmp_path))

    def test_confirming_every_group_walks_all_pages(self, service):
        session = ResolutionSession(service.grouper, MatchKind.EXACT, per_page=2)
        session.load()
        executor = TrashExecutor(service)
        assert session.has_more_pages

        for _ in range(10):
            if session.current_group is None:
                break
            executor.confirm_group(session, session.current_group.group_index)

        assert session.resolved_count == 3
        assert session.state is SessionState.RESOLVED
        assert [r.id for r in service.source.list_records()] == [1, 3, 5]
        assert service.fetch_summary().exact_groups == 0

    def test_emptied_page_is_refilled(self, service):
        session = ResolutionSession(service.grouper, MatchKind.EXACT, per_page=2)
        session.load()
        executor = TrashExecutor(service)

        executor.confirm_group(session, 0)
        executor.confirm_group(session, 1)

        assert session.page == 1
        assert [g.member_ids for g in session.groups] == [(5, 6, 7)]
        assert session.decisions_for(0) == {5: Decision.KEEP, 6: Decision.TRASH, 7: Decision.TRASH}
        assert session.resolved_count == 2


class TestConfirmFolderRule:
    """Test the batch per-folder rule."""

    def test_trashes_every_copy_in_one_call(self, mirrored_library):
        service = _service(mirrored_library)
        session = ResolutionSession(service.grouper, MatchKind.EXACT)
        session.load()
        assert session.super_group_for(0).group_indices == (0, 1, 2, 3, 4)
        super_group = FolderSuperGroup(
            folders=(KEEP_FOLDER, COPY_FOLDER), group_indices=(0, 1, 2, 3, 4)
        )

        session.apply_folder_rule(super_group, 0)
        assert session.decisions_for(3) == {4: Decision.KEEP, 14: Decision.TRASH}
        with mock.patch.object(service, "trash_files", wraps=service.trash_files) as spy:
            result = TrashExecutor(service).confirm_folder_rule(session)

        assert spy.call_count == 1
        assert sorted(spy.call_args[0][0]) == [11, 12, 13, 14, 15]
        assert result.trashed == 5
        assert result.groups_resolved == 5
        assert session.resolved_count == 5
        assert session.active_folder_rule is None
        assert [g.member_ids for g in session.groups] == [(21, 22)]
        assert session.decisions_for(0) == {21: Decision.KEEP, 22: Decision.TRASH}

    def test_partial_failure_keeps_failed_copy(self, mirrored_library):
        service = _service(mirrored_library, trash_errors={13: "File not found: x"})
        session = ResolutionSession(service.grouper, MatchKind.EXACT)
        session.load()
        super_group = session.super_group_for(0)
        session.apply_folder_rule(super_group, super_group.folders.index(KEEP_FOLDER))

        result = TrashExecutor(service).confirm_folder_rule(session)

        assert result.trashed == 4
        assert [f.file_id for f in result.failures] == [13]
        assert session.resolved_count == 5
        assert [g.member_ids for g in session.groups] == [(3, 13), (21, 22)]

    def test_targets_come_from_current_data(self, mirrored_library):
        """Files removed since the page was loaded are not sent again."""
        grouper = Grouper(mirrored_library)
        grouper.fetch_groups("exact")
        mirrored_library.remove_records([11])

        ids, groups_resolved = resolve_folder_rule_targets(
            grouper, MatchKind.EXACT, None, FolderRule(KEEP_FOLDER, COPY_FOLDER)
        )

        assert sorted(ids) == [12, 13, 14, 15]
        assert groups_resolved == 4

    def test_unknown_folder_pair_resolves_nothing(self, mirrored_library):
        ids, groups_resolved = resolve_folder_rule_targets(
            Grouper(mirrored_library), MatchKind.EXACT, None, FolderRule("x", "y")
        )
        assert ids == []
        assert groups_resolved == 0

    def test_requires_active_rule(self, session):
        with pytest.raises(InvalidConfirmError):
            TrashExecutor(FakeDeleter()).confirm_folder_rule(session)

    def test_source_offline_after_trash_clears_page(self, mirrored_library):
        session = ResolutionSession(Grouper(mirrored_library), MatchKind.EXACT)
        session.load()
        super_group = session.super_group_for(0)
        session.apply_folder_rule(super_group, super_group.folders.index(KEEP_FOLDER))

        with pytest.raises(DataUnavailableError):
            TrashExecutor(OfflineAfterTrash(mirrored_library)).confirm_folder_rule(session)

        assert session.groups == []
        assert session.decisions == {}
        assert session.active_folder_rule is None
        assert session.resolved_count == 5
        assert not session.can_confirm(0)

    def test_rule_limited_to_subdir(self, mirrored_library):
        service = _service(mirrored_library)
        session = ResolutionSession(service.grouper, MatchKind.EXACT, subdir="misc")
        session.load()
        session.active_folder_rule = FolderRule(KEEP_FOLDER, COPY_FOLDER)

        result = TrashExecutor(service).confirm_folder_rule(session)

        assert result.outcomes == ()
        assert result.groups_resolved == 0
        assert [g.member_ids for g in session.groups] == [(21, 22)]

    def test_rule_on_small_library(self, library, session):
        deleter = FakeDeleter()
        session.apply_folder_rule(session.super_group_for(0), 0)

        result = TrashExecutor(deleter).confirm_folder_rule(session)

        # FakeDeleter leaves the source untouched, so the groups reappear
        assert deleter.calls == [[2, 4]]
        assert result.groups_resolved == 2
        assert session.resolved_count == 2
        assert session.state is SessionState.VIEWING
