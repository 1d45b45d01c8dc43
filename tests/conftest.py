"""Pytest configuration and fixtures for somnio tests."""

import shutil

import pytest

from somnio import Dream


@pytest.fixture
def isolated_storage(tmp_path):
    """Per-test directory that holds the Kuzu databases.

    This fixture:
    - Creates unique temp directory for each test
    - Removes it after the store fixtures that use it are closed
    - Prevents database locking between tests
    """
    storage_path = tmp_path / "test_dreams"
    storage_path.mkdir(parents=True, exist_ok=True)

    yield storage_path

    if storage_path.exists():
        shutil.rmtree(storage_path, ignore_errors=True)


@pytest.fixture
def flying_dream():
    return Dream(
        id="flying",
        title="Flying over the ocean",
        description="I was flying above deep blue water, flying higher and higher",
        tags=["flying", "water"],
        emotion="happy",
        user_id="user-1",
    )


@pytest.fixture
def soaring_dream():
    return Dream(
        id="soaring",
        title="Flying over the ocean",
        description="I was flying above deep blue water, flying higher and higher again",
        tags=["flying", "water"],
        emotion="happy",
        user_id="user-2",
    )


@pytest.fixture
def exam_dream():
    return Dream(
        id="exam",
        title="Missed exam",
        description="School corridors, lost classroom, clock ticking loudly",
        tags=["school", "late"],
        emotion="sad",
        user_id="user-3",
    )
