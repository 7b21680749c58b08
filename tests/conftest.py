import pytest

from eagraph.core.commit import CommitCoordinator
from eagraph.core.workspace import Workspace
from eagraph.temporal.clock import LogicalClock

from tests.fixtures import EPOCH, REPOSITORY_NAME, make_metadata, open_handle


@pytest.fixture
def clock():
    return LogicalClock.manual(EPOCH)


@pytest.fixture
def metadata():
    return make_metadata()


@pytest.fixture
def handle(clock, metadata):
    """Open handle (Strict governance) over a repository holding one Enterprise."""
    handle = open_handle(clock, metadata)
    yield handle
    if handle.is_open:
        handle.close()


@pytest.fixture
def coordinator():
    return CommitCoordinator()


@pytest.fixture
def workspace(clock):
    return Workspace(repository_name=REPOSITORY_NAME, name="Test changes", clock=clock)
