from jobpilot.identity import Account, LinkedIdentity, SessionStore


class Clock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


def test_session_expires_after_ttl():
    clock = Clock()
    sessions = SessionStore(ttl_seconds=60, clock=clock)
    session = sessions.create("acct-1")

    assert sessions.get(session.token).account_id == "acct-1"
    clock.now += 61
    assert sessions.get(session.token) is None
    assert len(sessions) == 0


def test_sweep_removes_only_expired():
    clock = Clock()
    sessions = SessionStore(ttl_seconds=60, clock=clock)
    old = sessions.create("a")
    clock.now += 30
    fresh = sessions.create("b")
    clock.now += 40

    assert sessions.sweep() == 1
    assert sessions.get(old.token) is None
    assert sessions.get(fresh.token) is not None


def test_tokens_are_unique_and_revocable():
    sessions = SessionStore()
    a, b = sessions.create("x"), sessions.create("x")
    assert a.token != b.token
    assert sessions.revoke(a.token)
    assert not sessions.revoke(a.token)
    assert sessions.get(b.token) is not None


def test_eligibility_needs_both_providers_and_the_toggle():
    linked = [LinkedIdentity("linkedin", "li-1"), LinkedIdentity("google", "g-1", "tok")]
    assert Account("1", "a@b.co", identities=linked).is_eligible
    assert not Account("2", "a@b.co", identities=linked[:1]).is_eligible
    assert not Account("3", "a@b.co", automation_enabled=False, identities=linked).is_eligible
    assert Account("1", "a@b.co", identities=linked).identity("google").token == "tok"


def test_account_criteria_from_preferences():
    account = Account("1", "a@b.co", preferences={"keywords": ["go", "rust"], "location": "Berlin"})
    criteria = account.criteria()
    assert criteria.keywords == ("go", "rust")
    assert criteria.location == "Berlin"
    assert Account("2", "x@y.z").criteria().location == "India"


def test_account_criteria_carries_job_type_and_bare_keyword():
    account = Account("1", "a@b.co", preferences={"keywords": "react", "job_type": "contract"})
    criteria = account.criteria()
    assert criteria.keywords == ("react",)
    assert criteria.job_type == "contract"
    assert Account("2", "x@y.z").criteria().job_type == "full-time"
