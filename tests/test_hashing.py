"""
Credential Hasher (crypto/hashing.py)

Tests Argon2id and PBKDF2 hashing, verification semantics, rehash
detection, and PasswordPolicy.
"""

import pytest

from vaultverse.crypto.faults import CRYPTO_INVALID_DIGEST
from vaultverse.crypto.hashing import CredentialHasher, PasswordPolicy
from vaultverse.faults import INVALID_INPUT

from tests.conftest import cheap_hasher


# ============================================================================
# CredentialHasher
# ============================================================================

class TestCredentialHasher:

    def test_hash_and_verify(self, hasher):
        digest = hasher.hash("my_password")
        assert digest.startswith("$argon2id$")
        assert hasher.verify("my_password", digest) is True

    def test_verify_wrong(self, hasher):
        digest = hasher.hash("correct")
        assert hasher.verify("wrong", digest) is False

    def test_salted(self, hasher):
        assert hasher.hash("same") != hasher.hash("same")

    def test_empty_secret_rejected(self, hasher):
        with pytest.raises(INVALID_INPUT):
            hasher.hash("")

    def test_unknown_scheme(self, hasher):
        with pytest.raises(CRYPTO_INVALID_DIGEST):
            hasher.verify("pw", "$md5$abc")

    def test_corrupt_argon2_digest(self, hasher):
        with pytest.raises(CRYPTO_INVALID_DIGEST):
            hasher.verify("pw", "$argon2id$garbage")

    def test_non_string_digest(self, hasher):
        with pytest.raises(CRYPTO_INVALID_DIGEST):
            hasher.verify("pw", None)

    def test_unsupported_algorithm(self):
        with pytest.raises(ValueError):
            CredentialHasher(algorithm="md5")


class TestPbkdf2:

    def test_hash_and_verify(self):
        hasher = cheap_hasher(algorithm="pbkdf2_sha256", iterations=1000)
        digest = hasher.hash("secret")
        assert digest.startswith("$pbkdf2_sha256$1000$")
        assert hasher.verify("secret", digest) is True
        assert hasher.verify("Secret", digest) is False

    def test_argon2_digest_still_verifies(self, hasher):
        digest = hasher.hash("secret")
        pbkdf2 = cheap_hasher(algorithm="pbkdf2_sha256", iterations=1000)
        assert pbkdf2.verify("secret", digest) is True

    def test_corrupt_digest(self):
        hasher = cheap_hasher(algorithm="pbkdf2_sha256", iterations=1000)
        with pytest.raises(CRYPTO_INVALID_DIGEST):
            hasher.verify("secret", "$pbkdf2_sha256$notanumber$c2FsdA==$aGFzaA==")
        with pytest.raises(CRYPTO_INVALID_DIGEST):
            hasher.verify("secret", "$pbkdf2_sha256$1000$only-three")

    @pytest.mark.parametrize("iterations", [0, -5, 2**31, 2**64, 10_000_001])
    def test_iterations_out_of_range(self, iterations):
        hasher = cheap_hasher(algorithm="pbkdf2_sha256", iterations=1000)
        with pytest.raises(CRYPTO_INVALID_DIGEST):
            hasher.verify("secret", f"$pbkdf2_sha256${iterations}$c2FsdA==$aGFzaA==")

    def test_configured_iterations_bounded(self):
        with pytest.raises(ValueError):
            cheap_hasher(algorithm="pbkdf2_sha256", iterations=2**31)


class TestNeedsRehash:

    def test_current_parameters(self, hasher):
        assert hasher.needs_rehash(hasher.hash("pw")) is False

    def test_changed_work_factor(self, hasher):
        digest = hasher.hash("pw")
        stronger = cheap_hasher(time_cost=2)
        assert stronger.needs_rehash(digest) is True

    def test_algorithm_switch(self, hasher):
        pbkdf2 = cheap_hasher(algorithm="pbkdf2_sha256", iterations=1000)
        assert hasher.needs_rehash(pbkdf2.hash("pw")) is True
        assert pbkdf2.needs_rehash(hasher.hash("pw")) is True

    def test_pbkdf2_iterations(self):
        old = cheap_hasher(algorithm="pbkdf2_sha256", iterations=1000)
        new = cheap_hasher(algorithm="pbkdf2_sha256", iterations=2000)
        assert new.needs_rehash(old.hash("pw")) is True


# ============================================================================
# PasswordPolicy
# ============================================================================

class TestPasswordPolicy:

    def test_valid_password(self):
        ok, errors = PasswordPolicy().validate("Str0ng!Pass")
        assert ok is True
        assert errors == []

    def test_collects_all_errors(self):
        ok, errors = PasswordPolicy().validate("abc")
        assert ok is False
        assert len(errors) == 4

    def test_relaxed_policy(self):
        policy = PasswordPolicy(require_special=False, require_uppercase=False)
        assert policy.validate("lowercase1")[0] is True

    def test_strength_labels(self):
        assert PasswordPolicy.strength("abc") == "weak"
        assert PasswordPolicy.strength("abcdefgH1") == "medium"
        assert PasswordPolicy.strength("Correct-Horse-9") == "strong"
        assert PasswordPolicy.strength("Correct-Horse-Battery-9") == "very-strong"
