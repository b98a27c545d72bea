import pytest

from ballot_node.ballot_runtime.engine import VotingEngine

ADMIN = "@admin"


@pytest.fixture(scope="function")
def engine():
    """Fresh round per test, administrator pre-admitted"""
    return VotingEngine(ADMIN)


@pytest.fixture
def voting_engine(engine):
    """
    Round already in VotingSessionStarted with voters @alice, @bob, @carol
    and two proposals: #0 "P0" (by @alice), #1 "P1" (by @bob).
    """
    engine.admit_many(ADMIN, ["@alice", "@bob", "@carol"])
    engine.start_proposals(ADMIN)
    engine.submit_proposal("@alice", "P0")
    engine.submit_proposal("@bob", "P1")
    engine.stop_proposals(ADMIN)
    engine.start_voting(ADMIN)
    return engine
