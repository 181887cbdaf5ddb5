"""
SecurityCore facade (core.py)

End-to-end scenarios through the service-facing interface.
"""

import pytest

from vaultverse import SecurityCore, __version__
from vaultverse.auth.faults import AUTH_ACCOUNT_LOCKED, AUTH_TOKEN_REVOKED
from vaultverse.config import ConfigLoader
from vaultverse.crypto.faults import CRYPTO_DECRYPTION_FAILED
from vaultverse.crypto.cipher import generate_master_key
from vaultverse.vault.models import DecryptedAccount

from tests.conftest import STRONG_PASSWORD, make_identity


@pytest.fixture
def core(clock, activity_log):
    config = ConfigLoader.load(overrides={
        "master_key": generate_master_key(),
        "token_secret": "core-token-secret-with-enough-length-123",
        "hashing": {"time_cost": 1, "memory_cost": 8, "parallelism": 1},
        "export": {"kdf_n": 1024},
    }).get_security_config()
    return SecurityCore.from_config(config, activity_log=activity_log, clock=clock)


class TestSecurityCore:

    def test_version(self):
        assert __version__

    def test_field_encryption(self, core):
        field = core.encrypt_field("site-password")
        assert core.decrypt_field(field.serialize()) == "site-password"

    def test_secret_hashing(self, core):
        digest = core.hash_secret("login-secret")
        assert core.verify_secret("login-secret", digest) is True
        assert core.verify_secret("login-secreT", digest) is False

    @pytest.mark.asyncio
    async def test_session_lifecycle(self, core):
        identity = await core.auth.identity_store.create(make_identity(hasher=core.hasher))
        pair = await core.issue_session(identity)

        assert (await core.verify_access_token(pair.access_token)).id == identity.id

        new_access = await core.refresh_session(pair.refresh_token)
        await core.verify_access_token(new_access)

        await core.revoke_session(new_access)
        with pytest.raises(AUTH_TOKEN_REVOKED):
            await core.verify_access_token(new_access)

    @pytest.mark.asyncio
    async def test_revoke_all_sessions(self, core):
        identity = await core.auth.identity_store.create(make_identity(hasher=core.hasher))
        for _ in range(3):
            await core.issue_session(identity)
        assert await core.revoke_all_sessions(identity.id) == 3

    @pytest.mark.asyncio
    async def test_lockout_scenario(self, core, clock):
        identity = await core.auth.identity_store.create(make_identity(hasher=core.hasher))
        for _ in range(4):
            await core.record_login_outcome(identity.id, success=False)

        with pytest.raises(AUTH_ACCOUNT_LOCKED) as exc_info:
            await core.login(identity.username, "Wrong-Pass-1")
        assert exc_info.value.retry_after == pytest.approx(1800, abs=1)

        clock.advance(seconds=1801)
        result = await core.login(identity.username, STRONG_PASSWORD)
        assert result.identity.failed_attempts == 0
        assert result.identity.locked_until is None

    @pytest.mark.asyncio
    async def test_record_login_outcome(self, core):
        identity = await core.auth.identity_store.create(make_identity(hasher=core.hasher))
        for _ in range(5):
            state = await core.record_login_outcome(identity.id, success=False)
        assert state.locked_until is not None

        state = await core.record_login_outcome(identity.id, success=True)
        assert state.attempts == 0
        assert state.locked_until is None

    @pytest.mark.asyncio
    async def test_vault_backup(self, core, activity_log):
        owner = make_identity(hasher=core.hasher)
        accounts = [DecryptedAccount(site_name="Bank", password="b4nk-Secret")]

        container = await core.export_vault(accounts, "pw1-passphrase", owner=owner)
        result = await core.import_vault(container, "pw1-passphrase", owner=owner)
        assert result.imported == accounts

        with pytest.raises(CRYPTO_DECRYPTION_FAILED):
            await core.import_vault(container, "pw2-passphrase")

        assert activity_log.actions(owner.id) == ["export_vault", "import_vault"]
