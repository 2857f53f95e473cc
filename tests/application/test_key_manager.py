"""
Tests for KeyManager and KeyRotationTask.
"""

import asyncio
import base64
import dataclasses
import logging

import pytest

from saas_metrics_auth.application.key_manager import KeyManager, KeyRotationTask
from saas_metrics_auth.domain.errors import (
    AuthenticationTagMismatch,
    KeyNotFoundError,
    ValidationError,
)

DAY = 24 * 60 * 60


def audit_events(caplog, name):
    return [r for r in caplog.records if getattr(r, "security_event", None) == name]


@pytest.mark.parametrize(
    "plaintext", ["", "refresh-token-payload", "ünïcødé ✓", "x" * 10_000]
)
def test_encrypt_decrypt_round_trip(key_manager, plaintext):
    blob = key_manager.encrypt(plaintext)
    assert key_manager.decrypt(blob) == plaintext


def test_each_encryption_uses_fresh_nonce(key_manager):
    first = key_manager.encrypt("same")
    second = key_manager.encrypt("same")
    assert len(first.nonce) == 12
    assert len(first.auth_tag) == 16
    assert first.nonce != second.nonce
    assert first.cipher_text != second.cipher_text


def test_corrupted_tag_never_returns_plaintext(key_manager, caplog):
    blob = key_manager.encrypt("secret")
    flipped = bytes([blob.auth_tag[0] ^ 0x01]) + blob.auth_tag[1:]
    tampered = dataclasses.replace(blob, auth_tag=flipped)

    with caplog.at_level(logging.INFO, logger="saas_metrics_auth.audit"):
        with pytest.raises(AuthenticationTagMismatch):
            key_manager.decrypt(tampered)

    events = audit_events(caplog, "decryption_tag_mismatch")
    assert [r.levelno for r in events] == [logging.ERROR]


def test_corrupted_ciphertext_fails(key_manager):
    blob = key_manager.encrypt("secret")
    flipped = bytes([blob.cipher_text[0] ^ 0xFF]) + blob.cipher_text[1:]
    with pytest.raises(AuthenticationTagMismatch):
        key_manager.decrypt(dataclasses.replace(blob, cipher_text=flipped))


def test_key_version_is_bound_to_ciphertext(key_manager):
    blob = key_manager.encrypt("secret")
    key_manager.rotate()
    relabelled = dataclasses.replace(blob, key_version=2)
    with pytest.raises(AuthenticationTagMismatch):
        key_manager.decrypt(relabelled)


def test_unknown_version_raises_key_not_found(key_manager, caplog):
    blob = key_manager.encrypt("secret")
    with caplog.at_level(logging.INFO, logger="saas_metrics_auth.audit"):
        with pytest.raises(KeyNotFoundError):
            key_manager.decrypt(dataclasses.replace(blob, key_version=99))

    events = audit_events(caplog, "key_version_not_found")
    assert [r.levelno for r in events] == [logging.ERROR]
    assert events[0].key_version == 99


def test_wrong_nonce_length_is_validation_error(key_manager):
    blob = key_manager.encrypt("secret")
    with pytest.raises(ValidationError):
        key_manager.decrypt(dataclasses.replace(blob, nonce=b"short"))
    with pytest.raises(ValidationError):
        key_manager.decrypt(dataclasses.replace(blob, auth_tag=b"short"))


def test_decrypt_after_two_rotations(key_manager):
    blob = key_manager.encrypt("refresh-token-payload")
    key_manager.rotate()
    key_manager.rotate()

    assert key_manager.current_version == 3
    assert key_manager.decrypt(blob) == "refresh-token-payload"


def test_rotation_increments_version_and_changes_key(key_manager):
    before = key_manager.encrypt("a")
    record = key_manager.rotate()
    after = key_manager.encrypt("a")

    assert record.version == 2
    assert before.key_version == 1
    assert after.key_version == 2
    assert key_manager.versions() == [1, 2]


def test_blob_readable_until_retention_ends(clock):
    manager = KeyManager(retention_period=90 * DAY, clock=clock)
    blob = manager.encrypt("payload")

    clock.advance(DAY)
    manager.rotate()

    clock.advance(88 * DAY)
    assert manager.decrypt(blob) == "payload"

    clock.advance(DAY + 1)
    with pytest.raises(KeyNotFoundError):
        manager.decrypt(blob)


def test_current_key_never_expires(clock):
    manager = KeyManager(retention_period=DAY, clock=clock)
    blob = manager.encrypt("payload")
    clock.advance(10 * DAY)
    assert manager.decrypt(blob) == "payload"
    assert manager.purge_expired() == []


def test_rotate_purges_expired_versions(clock):
    manager = KeyManager(retention_period=10 * DAY, clock=clock)
    manager.rotate()  # v2
    clock.advance(11 * DAY)
    manager.rotate()  # v3, v1 and v2 are past retention

    assert manager.versions() == [3]


def test_purge_expired_drops_old_versions(clock):
    manager = KeyManager(retention_period=10 * DAY, clock=clock)
    manager.rotate()
    clock.advance(11 * DAY)

    assert manager.purge_expired() == [1]
    assert manager.versions() == [2]


def test_initial_key_must_be_32_bytes():
    with pytest.raises(ValidationError):
        KeyManager(initial_key=b"short")


def test_initial_key_is_used(clock):
    key = base64.b64decode(base64.b64encode(b"k" * 32))
    first = KeyManager(initial_key=key, clock=clock)
    second = KeyManager(initial_key=key, clock=clock)
    assert second.decrypt(first.encrypt("shared")) == "shared"


# -----------------------------------------------------------------------------
# ROTATION TASK
# -----------------------------------------------------------------------------


class _StepSleep:
    """Sleep replacement that lets the test decide when each tick fires."""

    def __init__(self):
        self.ticks = asyncio.Queue()
        self.calls = 0

    async def __call__(self, seconds):
        self.calls += 1
        await self.ticks.get()


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_rotation_task_rotates_each_tick(key_manager):
    sleep = _StepSleep()
    task = KeyRotationTask(key_manager, interval=60, sleep=sleep)

    async with task:
        assert task.running
        sleep.ticks.put_nowait(None)
        await _settle()
        sleep.ticks.put_nowait(None)
        await _settle()
        assert key_manager.current_version == 3

    assert not task.running


@pytest.mark.asyncio
async def test_rotation_task_survives_failed_rotation(key_manager, monkeypatch):
    sleep = _StepSleep()
    task = KeyRotationTask(key_manager, interval=60, sleep=sleep)
    original = key_manager.rotate
    attempts = []

    def flaky_rotate():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("entropy source unavailable")
        return original()

    monkeypatch.setattr(key_manager, "rotate", flaky_rotate)

    task.start()
    sleep.ticks.put_nowait(None)
    await _settle()
    assert key_manager.current_version == 1

    sleep.ticks.put_nowait(None)
    await _settle()
    assert key_manager.current_version == 2
    await task.stop()


@pytest.mark.asyncio
async def test_rotation_task_stop_is_idempotent(key_manager):
    task = KeyRotationTask(key_manager, interval=60)
    task.start()
    task.start()
    await task.stop()
    await task.stop()
    assert not task.running


def test_rotation_task_rejects_non_positive_interval(key_manager):
    with pytest.raises(ValidationError):
        KeyRotationTask(key_manager, interval=0)
