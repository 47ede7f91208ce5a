import hashlib
import string
from datetime import timedelta

from app.core.tokens import hash_reset_token, issue_access_token, issue_reset_token, reset_token_expiry, share_expiry


def test_access_tokens_are_unique_and_well_formed():
    tokens = {issue_access_token() for _ in range(10_000)}
    assert len(tokens) == 10_000
    for token in list(tokens)[:100]:
        assert token.startswith("tk_")
        assert len(token) == 67
        assert set(token[3:]) <= set(string.hexdigits.lower())


def test_reset_token_only_hash_is_stored():
    plaintext, stored = issue_reset_token()
    assert stored == hashlib.sha256(plaintext.encode()).hexdigest()
    assert stored != plaintext
    assert hash_reset_token(plaintext) == stored


def test_expiry_windows(clock):
    assert share_expiry(clock()) == clock() + timedelta(hours=24)
    assert share_expiry(clock(), 2) == clock() + timedelta(hours=2)
    assert reset_token_expiry(clock()) == clock() + timedelta(minutes=60)
