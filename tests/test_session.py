"""Tests for the resolution session state machine."""

from unittest import mock

import pytest

from conftest import make_record
from media_dedup.core.errors import DataUnavailableError
from media_dedup.core.grouper import Grouper
from media_dedup.core.models import Decision, FolderRule, MatchKind
from media_dedup.core.session import ResolutionSession, SessionState
from media_dedup.platforms.memory import InMemoryMetadataSource

KEEP = Decision.KEEP
TRASH = Decision.TRASH


@pytest.fixture
def library():
    """
    Three exact groups, listed in this order:

    0: ids 1, 2 split between vacation and vacation_copy (keep 1, larger)
    1: ids 3, 4 split between vacation and vacation_copy (keep 3, lower id)
    2: ids 5, 6, 7 all in misc
    """
    return InMemoryMetadataSource(
        [
            make_record(1, "vacation", content_hash="a", size_bytes=200, width=1920, height=1080),
            make_record(2, "vacation_copy", content_hash="a", size_bytes=200, width=640, height=480),
            make_record(3, "vacation", content_hash="b", size_bytes=100, width=800, height=600),
            make_record(4, "vacation_copy", content_hash="b", size_bytes=100, width=800, height=600),
            make_record(5, "misc", content_hash="c", size_bytes=50),
            make_record(6, "misc", content_hash="c", size_bytes=50),
            make_record(7, "misc", content_hash="c", size_bytes=50),
        ]
    )


@pytest.fixture
def session(library):
    session = ResolutionSession(Grouper(library), MatchKind.EXACT)
    session.load()
    return session


class TestLoading:
    """Test page loading and seeding."""

    def test_new_session_is_idle(self, library):
        assert ResolutionSession(Grouper(library)).state is SessionState.IDLE

    def test_load_seeds_suggestions(self, session):
        """Every group starts with its suggestion kept and the rest trashed."""
        assert session.state is SessionState.VIEWING
        assert [g.member_ids for g in session.groups] == [(1, 2), (3, 4), (5, 6, 7)]
        assert session.decisions_for(0) == {1: KEEP, 2: TRASH}
        assert session.decisions_for(1) == {3: KEEP, 4: TRASH}
        assert session.decisions_for(2) == {5: KEEP, 6: TRASH, 7: TRASH}
        assert session.cursor == 0
        assert session.resolved_count == 0
        assert session.total_groups == 3

    def test_empty_library_is_resolved(self):
        session = ResolutionSession(Grouper(InMemoryMetadataSource()))
        assert session.load() is SessionState.RESOLVED
        assert session.current_group is None

    def test_load_resets_progress(self, session):
        session.toggle_decision(0, 2, KEEP)
        session.advance()
        session.remove_group(2)
        session.apply_folder_rule(session.folder_super_groups[0], 0)

        session.load()

        assert session.cursor == 0
        assert session.resolved_count == 0
        assert session.active_folder_rule is None
        assert session.decisions_for(0) == {1: KEEP, 2: TRASH}

    def test_load_can_switch_match_kind(self, session):
        session.load("similar")
        assert session.match_kind is MatchKind.SIMILAR
        assert session.state is SessionState.RESOLVED

    def test_failed_load_leaves_session_untouched(self, session):
        """Test that a failed fetch restores the previous state."""
        session.toggle_decision(0, 2, KEEP)
        session.advance()
        generation = session.generation

        with mock.patch.object(
            session.grouper, "fetch_groups", side_effect=DataUnavailableError("offline")
        ):
            with pytest.raises(DataUnavailableError):
                session.load()

        assert session.state is SessionState.VIEWING
        assert session.generation == generation
        assert session.cursor == 1
        assert session.decisions_for(0) == {1: KEEP, 2: KEEP}

    def test_stale_page_is_dropped(self, session):
        """Only the page of the latest request is installed."""
        first = session.begin_load()
        second = session.begin_load()
        page = session.grouper.fetch_groups(MatchKind.EXACT)

        assert not session.receive_page(first, page)
        assert session.receive_page(second, page)
        assert len(session.groups) == 3

    def test_reload_keeps_matching_decisions(self, library, session):
        """Decisions survive a reload only for groups with the same members."""
        session.toggle_decision(0, 2, KEEP)
        session.toggle_decision(1, 4, KEEP)

        # Group c grows and moves ahead of group b
        library.add_records([make_record(8, "misc", content_hash="c", size_bytes=50)])
        session.reload()

        assert [g.member_ids for g in session.groups] == [(1, 2), (5, 6, 7, 8), (3, 4)]
        assert session.decisions_for(0) == {1: KEEP, 2: KEEP}
        assert session.decisions_for(1) == {5: KEEP, 6: TRASH, 7: TRASH, 8: TRASH}
        assert session.decisions_for(2) == {3: KEEP, 4: TRASH}

    def test_subdir_limits_the_page(self, library):
        session = ResolutionSession(Grouper(library), subdir="misc")
        session.load()

        assert [g.member_ids for g in session.groups] == [(5, 6, 7)]
        assert session.decisions_for(0) == {5: KEEP, 6: TRASH, 7: TRASH}


class TestDecisions:
    """Test toggling and confirmation rules."""

    def test_toggle_sets_then_flips(self, session):
        session.toggle_decision(0, 2, KEEP)
        assert session.decision_of(0, 2) is KEEP

        session.toggle_decision(0, 2, KEEP)
        assert session.decision_of(0, 2) is TRASH

    def test_toggle_accepts_strings(self, session):
        session.toggle_decision(0, 1, "trash")
        assert session.decision_of(0, 1) is TRASH

    def test_toggle_rejects_undecided_target(self, session):
        with pytest.raises(ValueError):
            session.toggle_decision(0, 1, Decision.UNDECIDED)

    def test_stale_operations_are_ignored(self, session):
        """Operations on groups or files not on the page change nothing."""
        before = {k: dict(v) for k, v in session.decisions.items()}

        session.toggle_decision(99, 1, KEEP)
        session.toggle_decision(0, 99, KEEP)
        session.accept_suggestion(99)
        session.remove_group(99)

        assert session.decisions == before
        assert session.resolved_count == 0
        assert not session.can_confirm(99)
        assert session.decision_of(99, 1) is Decision.UNDECIDED

    def test_can_confirm_needs_a_keeper(self, session):
        assert session.can_confirm(0)

        session.toggle_decision(0, 1, TRASH)

        assert not session.can_confirm(0)
        assert session.trash_ids(0) == [1, 2]

    def test_accept_suggestion_restores_seed(self, session):
        session.toggle_decision(2, 5, TRASH)
        session.toggle_decision(2, 7, KEEP)

        session.accept_suggestion(2)

        assert session.decisions_for(2) == {5: KEEP, 6: TRASH, 7: TRASH}

    def test_trash_ids(self, session):
        assert session.trash_ids(2) == [6, 7]
        assert session.trash_ids(99) == []


class TestFolderRule:
    """Test the local per-folder preview."""

    def test_apply_folder_rule_overwrites_decisions(self, session):
        super_group = session.super_group_for(0)
        assert super_group.folders == ("vacation", "vacation_copy")
        assert super_group.group_indices == (0, 1)

        session.apply_folder_rule(super_group, 1)

        assert session.active_folder_rule == FolderRule("vacation_copy", "vacation")
        assert session.decisions_for(0) == {1: TRASH, 2: KEEP}
        assert session.decisions_for(1) == {3: TRASH, 4: KEEP}
        assert session.decisions_for(2) == {5: KEEP, 6: TRASH, 7: TRASH}
        assert session.active_super_group() is super_group

    def test_keep_folder_index_must_be_zero_or_one(self, session):
        with pytest.raises(ValueError):
            session.apply_folder_rule(session.folder_super_groups[0], 2)

    def test_clear_folder_rule(self, session):
        session.apply_folder_rule(session.folder_super_groups[0], 0)
        session.clear_folder_rule()
        assert session.active_folder_rule is None
        assert session.active_super_group() is None

    def test_group_outside_super_groups(self, session):
        assert session.super_group_for(2) is None


class TestNavigation:
    """Test cursor movement and group removal."""

    def test_advance_and_retreat_stay_in_range(self, session):
        session.retreat()
        assert session.cursor == 0

        session.advance()
        session.skip()
        session.advance()
        assert session.cursor == 2
        assert session.current_group.group_index == 2

        session.retreat()
        assert session.cursor == 1

    def test_remove_group_before_cursor(self, session):
        session.advance()
        session.advance()

        session.remove_group(0)

        assert session.cursor == 1
        assert session.current_group.group_index == 2
        assert session.resolved_count == 1
        assert session.decisions_for(0) == {}
        assert session.decisions_for(2) == {5: KEEP, 6: TRASH, 7: TRASH}

    def test_remove_last_group_clamps_cursor(self, session):
        session.advance()
        session.advance()

        session.remove_group(2)

        assert session.cursor == 1
        assert session.current_group.group_index == 1

    def test_removing_everything_resolves(self, session):
        for index in (0, 1, 2):
            session.remove_group(index)

        assert session.state is SessionState.RESOLVED
        assert session.cursor == 0
        assert session.resolved_count == 3
        assert session.current_group is None

    def test_select_moves_cursor_to_group(self, session):
        session.select(2)
        assert session.cursor == 2
        assert session.current_group.group_index == 2

        session.select(99)
        assert session.cursor == 2


class TestPaging:
    """Test moving through a listing larger than one page."""

    @pytest.fixture
    def paged(self, library):
        session = ResolutionSession(Grouper(library), MatchKind.EXACT, per_page=2)
        session.load()
        return session

    def test_first_page_reports_more(self, paged):
        assert [g.group_index for g in paged.groups] == [0, 1]
        assert paged.total_groups == 3
        assert paged.has_more_pages

    def test_next_page(self, paged):
        paged.advance()
        paged.resolved_count = 1

        paged.next_page()

        assert paged.page == 2
        assert paged.cursor == 0
        assert [g.member_ids for g in paged.groups] == [(5, 6, 7)]
        assert paged.decisions_for(2) == {5: KEEP, 6: TRASH, 7: TRASH}
        assert paged.resolved_count == 1
        assert not paged.has_more_pages

    def test_refill_pulls_following_groups_forward(self, library, paged):
        library.remove_records([2, 4])
        paged.remove_group(0)
        paged.remove_group(1)

        paged.refill()

        assert paged.page == 1
        assert [g.member_ids for g in paged.groups] == [(5, 6, 7)]
        assert paged.decisions_for(0) == {5: KEEP, 6: TRASH, 7: TRASH}
        assert paged.resolved_count == 2
        assert paged.state is SessionState.VIEWING

    def test_refill_falls_back_to_last_page(self, library, paged):
        paged.next_page()
        # Only the group of ids 3 and 4 is left afterwards
        library.remove_records([1, 6, 7])
        paged.remove_group(2)

        paged.refill()

        assert paged.page == 1
        assert [g.member_ids for g in paged.groups] == [(3, 4)]

    def test_refill_leaves_a_page_with_groups_alone(self, paged):
        with mock.patch.object(paged.grouper, "fetch_groups") as fetch:
            paged.refill()

        fetch.assert_not_called()
        assert len(paged.groups) == 2

    def test_refill_of_exhausted_listing_resolves(self, library, paged):
        library.remove_records([2, 4, 6, 7])
        paged.remove_group(0)
        paged.remove_group(1)

        paged.refill()

        assert paged.state is SessionState.RESOLVED
        assert paged.total_groups == 0

    def test_page_size_follows_grouper_clamp(self, library):
        session = ResolutionSession(Grouper(library, max_per_page=1), per_page=50)
        session.load()

        assert session.per_page == 1
        assert len(session.groups) == 1
        assert session.has_more_pages

    def test_discard_page(self, paged):
        paged.discard_page()

        assert paged.groups == []
        assert paged.decisions == {}
        assert paged.state is SessionState.RESOLVED
        assert not paged.can_confirm(0)
