import base64

import pytest
from cryptography.exceptions import InvalidTag

from timesheet_submit.credentials.crypto import (
    KEY_SIZE,
    NONCE_SIZE,
    decode_key,
    decrypt_aes_gcm,
    encrypt_aes_gcm,
    generate_key,
)
from timesheet_submit.credentials.store import (
    CredentialsNotFoundError,
    delete_credentials,
    get_credentials,
    get_encryption_key,
    store_credentials,
)
from timesheet_submit.db.models import Credential


@pytest.fixture
def key():
    return decode_key(generate_key())


def test_encrypt_decrypt(key):
    ciphertext, nonce = encrypt_aes_gcm("s3cret!", key)
    assert len(nonce) == NONCE_SIZE
    assert b"s3cret!" not in ciphertext
    assert decrypt_aes_gcm(ciphertext, nonce, key) == "s3cret!"


def test_decrypt_with_wrong_key_fails(key):
    ciphertext, nonce = encrypt_aes_gcm("s3cret!", key)
    with pytest.raises(InvalidTag):
        decrypt_aes_gcm(ciphertext, nonce, decode_key(generate_key()))


def test_associated_data_is_bound(key):
    ciphertext, nonce = encrypt_aes_gcm("s3cret!", key, b"smartsheet")
    with pytest.raises(InvalidTag):
        decrypt_aes_gcm(ciphertext, nonce, key, b"other")


def test_key_and_nonce_sizes_are_checked(key):
    with pytest.raises(ValueError):
        encrypt_aes_gcm("x", b"short")
    with pytest.raises(ValueError):
        decrypt_aes_gcm(b"data", b"123", key)


@pytest.mark.parametrize("encoded", ["not base64!!", base64.urlsafe_b64encode(b"x" * 16).decode()])
def test_decode_key_rejects_bad_keys(encoded):
    with pytest.raises(ValueError):
        decode_key(encoded)


def test_generated_key_length():
    assert len(decode_key(generate_key())) == KEY_SIZE


def test_encryption_key_from_environment(monkeypatch):
    monkeypatch.delenv("TIMESHEET_CREDENTIALS_KEY", raising=False)
    with pytest.raises(ValueError):
        get_encryption_key()

    encoded = generate_key()
    monkeypatch.setenv("TIMESHEET_CREDENTIALS_KEY", encoded)
    assert get_encryption_key() == decode_key(encoded)


def test_store_and_load_credentials(database, key):
    with database.session_scope() as db:
        store_credentials(db, "tech@example.com", "first-pass", key=key)
    with database.session_scope() as db:
        store_credentials(db, "tech@example.com", "second-pass", key=key)

    with database.session_scope() as db:
        assert db.query(Credential).count() == 1
        stored = db.query(Credential).one()
        assert b"second-pass" not in stored.enc_password
        credentials = get_credentials(db, key=key)

    assert credentials.email == "tech@example.com"
    assert credentials.password == "second-pass"
    assert "second-pass" not in repr(credentials)


def test_missing_credentials(database, key):
    with database.session_scope() as db:
        with pytest.raises(CredentialsNotFoundError):
            get_credentials(db, key=key)
        assert delete_credentials(db) is False


def test_wrong_key_is_reported_as_value_error(database, key):
    with database.session_scope() as db:
        store_credentials(db, "tech@example.com", "pw", key=key)

    with database.session_scope() as db:
        with pytest.raises(ValueError):
            get_credentials(db, key=decode_key(generate_key()))


def test_delete_credentials(database, key):
    with database.session_scope() as db:
        store_credentials(db, "tech@example.com", "pw", key=key)
    with database.session_scope() as db:
        assert delete_credentials(db) is True
    with database.session_scope() as db:
        assert db.query(Credential).count() == 0
