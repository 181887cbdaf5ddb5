"""
Vault Codec (vault/)

Tests encrypted export/import, oracle-resistant failure reporting,
best-effort record handling, and at-rest sealing.
"""

import base64
import json
import os

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from vaultverse.crypto.faults import CRYPTO_DECRYPTION_FAILED, CRYPTO_FAILURE
from vaultverse.vault.codec import VaultCodec
from vaultverse.vault.faults import VAULT_CONTAINER_MALFORMED, VAULT_EMPTY, VAULT_PASSPHRASE_WEAK
from vaultverse.vault.models import DecryptedAccount, StoredAccount, VaultContainer


PASSPHRASE = "export-passphrase-1"


def _accounts():
    return [
        DecryptedAccount(
            site_name="GitHub",
            password="gh-Secret-1",
            site_url="https://github.com",
            username="octo",
            notes="recovery codes in safe",
            category="work",
            is_favorite=True,
        ),
        DecryptedAccount(site_name="Mail", password="mail-Secret-2", email="me@example.com"),
    ]


def _forge(codec, bundle, passphrase=PASSPHRASE, created_at="2024-06-01T12:00:00+00:00"):
    """Build a correctly encrypted container around an arbitrary bundle."""
    container = VaultContainer(payload="", created_at=created_at)
    salt, iv = os.urandom(16), os.urandom(12)
    key = Scrypt(salt=salt, length=32, n=codec.kdf_n, r=codec.kdf_r, p=codec.kdf_p).derive(
        passphrase.encode()
    )
    raw = bundle if isinstance(bundle, bytes) else json.dumps(bundle).encode()
    ciphertext = AESGCM(key).encrypt(iv, raw, container.associated_data())
    payload = base64.b64encode(salt + iv + ciphertext).decode()
    return VaultContainer(payload=payload, created_at=created_at)


# ============================================================================
# Export
# ============================================================================

class TestExport:

    def test_container_shape(self, codec, clock):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        data = json.loads(container.to_json())

        assert set(data) == {"version", "createdAt", "payload"}
        assert data["version"] == "2.0"
        assert data["createdAt"] == clock().isoformat()
        assert "gh-Secret-1" not in container.to_json()

    def test_empty_vault(self, codec):
        with pytest.raises(VAULT_EMPTY):
            codec.export_vault([], PASSPHRASE)

    def test_weak_passphrase(self, codec):
        with pytest.raises(VAULT_PASSPHRASE_WEAK):
            codec.export_vault(_accounts(), "short")

    def test_fresh_salt_per_export(self, codec):
        a = codec.export_vault(_accounts(), PASSPHRASE)
        b = codec.export_vault(_accounts(), PASSPHRASE)
        assert a.payload != b.payload

    def test_suggested_filename(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        assert container.suggested_filename() == "vaultverse-backup-2024-06-01T12-00-00.json"


# ============================================================================
# Import
# ============================================================================

class TestImport:

    def test_roundtrip(self, codec):
        accounts = _accounts()
        container = codec.export_vault(accounts, PASSPHRASE, exported_by="alice")
        result = codec.import_vault(container, PASSPHRASE)

        assert result.imported == accounts
        assert result.skipped == []
        assert result.exported_by == "alice"

    def test_accepts_json_and_dict(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        assert codec.import_vault(container.to_json(), PASSPHRASE).imported_count == 2
        assert codec.import_vault(container.to_dict(), PASSPHRASE).imported_count == 2

    def test_wrong_passphrase(self, codec):
        container = codec.export_vault(_accounts(), "pw1-long-enough")
        with pytest.raises(CRYPTO_DECRYPTION_FAILED):
            codec.import_vault(container, "pw2-long-enough")

    @pytest.mark.parametrize("container", [
        "not json",
        "[]",
        {"version": "2.0", "createdAt": "2024-06-01"},
        {"version": "2.0", "createdAt": "2024-06-01", "payload": "!!!not-base64!!!"},
        {"version": "2.0", "createdAt": "2024-06-01", "payload": base64.b64encode(b"tiny").decode()},
        42,
    ])
    def test_corrupted_container(self, codec, container):
        with pytest.raises(CRYPTO_DECRYPTION_FAILED):
            codec.import_vault(container, PASSPHRASE)

    def test_flipped_payload_byte(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        raw = bytearray(base64.b64decode(container.payload))
        raw[-1] ^= 0x01
        tampered = VaultContainer(
            payload=base64.b64encode(bytes(raw)).decode(),
            created_at=container.created_at,
        )
        with pytest.raises(CRYPTO_DECRYPTION_FAILED):
            codec.import_vault(tampered, PASSPHRASE)

    def test_metadata_tampering_fails(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        forged = VaultContainer(payload=container.payload, created_at="2020-01-01T00:00:00+00:00")
        with pytest.raises(CRYPTO_DECRYPTION_FAILED):
            codec.import_vault(forged, PASSPHRASE)

    def test_wrong_passphrase_and_corruption_look_alike(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        with pytest.raises(CRYPTO_FAILURE) as wrong:
            codec.import_vault(container, "another-passphrase")
        with pytest.raises(CRYPTO_FAILURE) as corrupt:
            codec.import_vault({"version": "2.0", "createdAt": "x", "payload": "AAAA"}, PASSPHRASE)
        assert wrong.value.public_message == corrupt.value.public_message

    def test_unparseable_bundle(self, codec):
        container = _forge(codec, b"\x00not json")
        with pytest.raises(VAULT_CONTAINER_MALFORMED):
            codec.import_vault(container, PASSPHRASE)

    @pytest.mark.parametrize("bundle", [{"version": "2.0"}, {"accounts": "nope"}, ["list"]])
    def test_missing_accounts(self, codec, bundle):
        with pytest.raises(VAULT_CONTAINER_MALFORMED):
            codec.import_vault(_forge(codec, bundle), PASSPHRASE)

    def test_empty_accounts_list(self, codec):
        result = codec.import_vault(_forge(codec, {"accounts": []}), PASSPHRASE)
        assert result.imported == []
        assert result.skipped == []

    def test_partial_success(self, codec):
        bundle = {
            "accounts": [
                {"siteName": "Good", "password": "pw-1"},
                {"siteName": "NoPassword"},
                "not-an-object",
                {"siteName": "BadType", "password": 123},
                {"siteName": "Also good", "password": "pw-2", "isFavorite": True},
            ]
        }
        result = codec.import_vault(_forge(codec, bundle), PASSPHRASE)

        assert [a.site_name for a in result.imported] == ["Good", "Also good"]
        assert [s.index for s in result.skipped] == [1, 2, 3]
        assert result.skipped[0].site_name == "NoPassword"
        assert all(s.reason for s in result.skipped)
        assert result.to_dict()["skipped"] == 3

    def test_strict_mode(self, codec):
        bundle = {"accounts": [{"siteName": "Good", "password": "pw"}, {"siteName": "Bad"}]}
        with pytest.raises(VAULT_CONTAINER_MALFORMED):
            codec.import_vault(_forge(codec, bundle), PASSPHRASE, strict=True)

    def test_defaults_applied(self, codec):
        bundle = {"accounts": [{"siteName": "Bare", "password": "pw", "siteUrl": ""}]}
        account = codec.import_vault(_forge(codec, bundle), PASSPHRASE).imported[0]
        assert account.category == "general"
        assert account.is_favorite is False
        assert account.site_url is None


# ============================================================================
# Inspect
# ============================================================================

class TestInspect:

    def test_summary(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE, exported_by="alice")
        summary = codec.inspect(container, PASSPHRASE)

        assert summary.total_accounts == 2
        assert summary.exported_by == "alice"
        assert summary.categories == {"work": 1, "general": 1}
        assert summary.favorite_count == 1

    def test_wrong_passphrase(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        with pytest.raises(CRYPTO_DECRYPTION_FAILED):
            codec.inspect(container, "incorrect-passphrase")


# ============================================================================
# At-rest sealing
# ============================================================================

class TestSealing:

    def test_seal_unseal(self, codec):
        account = _accounts()[0]
        stored = codec.seal(account)

        assert stored.password_encrypted.count(":") == 1
        assert "gh-Secret-1" not in stored.password_encrypted
        assert stored.notes_encrypted is not None
        assert codec.unseal(stored) == account

    def test_seal_without_notes(self, codec):
        stored = codec.seal(_accounts()[1])
        assert stored.notes_encrypted is None
        assert codec.unseal(stored).notes is None

    def test_export_stored_skips_unreadable(self, codec):
        good = codec.seal(_accounts()[0])
        broken = StoredAccount(site_name="Broken", password_encrypted="00" * 12 + ":" + "11" * 20)

        container = codec.export_stored([good, broken], PASSPHRASE)
        result = codec.import_vault(container, PASSPHRASE)
        assert [a.site_name for a in result.imported] == ["GitHub"]

    def test_export_stored_all_unreadable(self, codec):
        broken = StoredAccount(site_name="Broken", password_encrypted="garbage")
        with pytest.raises(VAULT_EMPTY):
            codec.export_stored([broken], PASSPHRASE)

    def test_import_and_seal(self, codec):
        container = codec.export_vault(_accounts(), PASSPHRASE)
        result = codec.import_and_seal(container, PASSPHRASE)

        assert all(isinstance(s, StoredAccount) for s in result.imported)
        assert codec.unseal(result.imported[0]).password == "gh-Secret-1"

    def test_import_and_seal_reports_bundle_positions(self, codec, monkeypatch):
        bundle = {
            "accounts": [
                {"siteName": "NoPassword"},
                {"siteName": "First", "password": "pw-1"},
                {"siteName": "Unsealable", "password": "pw-2"},
                {"siteName": "Second", "password": "pw-3"},
            ]
        }
        seal = codec.seal

        def failing_seal(account):
            if account.site_name == "Unsealable":
                raise CRYPTO_FAILURE(reason="cipher unavailable")
            return seal(account)

        monkeypatch.setattr(codec, "seal", failing_seal)
        result = codec.import_and_seal(_forge(codec, bundle), PASSPHRASE)

        assert [s.site_name for s in result.imported] == ["First", "Second"]
        assert [(s.index, s.site_name) for s in result.skipped] == [(0, "NoPassword"), (2, "Unsealable")]

    def test_requires_cipher(self):
        with pytest.raises(RuntimeError):
            VaultCodec(kdf_n=2**10).seal(_accounts()[0])
