"""Shared fixtures for media-dedup tests."""

import pytest

from media_dedup.core.grouper import Grouper
from media_dedup.core.models import MediaRecord, TrashOutcome
from media_dedup.platforms.memory import InMemoryMetadataSource


def make_record(file_id, directory="photos", filename=None, **kwargs):
    """Build a MediaRecord with sensible defaults."""
    return MediaRecord(
        id=file_id,
        directory_path=directory,
        filename=filename or f"img_{file_id}.jpg",
        **kwargs,
    )


class FakeDeleter:
    """Delete primitive that records calls and fails selected ids."""

    def __init__(self, fail=None):
        self.fail = dict(fail or {})
        self.calls = []

    def trash_files(self, file_ids):
        self.calls.append(list(file_ids))
        return [
            TrashOutcome.failure(fid, self.fail[fid])
            if fid in self.fail
            else TrashOutcome.success(fid)
            for fid in file_ids
        ]


@pytest.fixture
def record():
    return make_record


@pytest.fixture
def source():
    return InMemoryMetadataSource()


@pytest.fixture
def grouper(source):
    return Grouper(source)
