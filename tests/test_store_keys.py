import hashlib

from store import keys


def test_slug_consistency():
    v = "hello"
    assert keys._slug(v) == hashlib.sha256(v.encode()).hexdigest()[:32]


def test_keys_format():
    assert keys.outbox("guard.action") == "guard:outbox:guard.action"
    assert keys.service_outbox("feed_ws") == f"guard:outbox:service:{keys._slug('feed_ws')}"
    assert keys.policy() == "guard:policy"
