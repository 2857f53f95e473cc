"""
Versioned encryption keys for data at rest.

KeyManager encrypts with AES-256-GCM under the current key and keeps
superseded keys for a retention period so existing blobs stay readable
across rotations. KeyRotationTask rotates on a fixed interval for as
long as the owning process lifecycle keeps it running.
"""

import asyncio
import contextlib
import logging
import os
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from saas_metrics_auth.audit import log_security_event
from saas_metrics_auth.domain.errors import (
    AuthenticationTagMismatch,
    KeyNotFoundError,
    ValidationError,
)
from saas_metrics_auth.domain.value_objects import EncryptedBlob, KeyRecord

logger = logging.getLogger(__name__)

KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16
DEFAULT_RETENTION_PERIOD = 90 * 24 * 60 * 60
DEFAULT_ROTATION_INTERVAL = 24 * 60 * 60


def _associated_data(version: int) -> bytes:
    return f"key-version:{version}".encode("ascii")


@dataclass(frozen=True)
class _KeyRing:
    """Snapshot of every retained key. Replaced as a whole, never mutated."""

    current: KeyRecord
    records: Mapping[int, KeyRecord]


class KeyManager:
    """
    Encrypt and decrypt with rotating AES-256-GCM keys.

    The key ring is one immutable snapshot swapped in a single assignment,
    so a concurrent reader sees either the old ring or the new one. Writers
    (``rotate``/``purge_expired``) serialise on a lock.

    Example:
        manager = KeyManager()
        blob = manager.encrypt("refresh-token")
        manager.rotate()
        assert manager.decrypt(blob) == "refresh-token"
    """

    def __init__(
        self,
        initial_key: Optional[bytes] = None,
        retention_period: int = DEFAULT_RETENTION_PERIOD,
        clock: Callable[[], float] = time.time,
    ):
        if retention_period <= 0:
            raise ValidationError("Key retention period must be positive")
        if initial_key is None:
            initial_key = AESGCM.generate_key(bit_length=KEY_BYTES * 8)
        if len(initial_key) != KEY_BYTES:
            raise ValidationError(f"Encryption key must be {KEY_BYTES} bytes")

        self._clock = clock
        self._retention = retention_period
        self._write_lock = threading.Lock()
        record = KeyRecord(version=1, key_material=initial_key, created_at=clock())
        self._ring = _KeyRing(current=record, records=MappingProxyType({1: record}))

    @property
    def current_version(self) -> int:
        return self._ring.current.version

    @property
    def retention_period(self) -> int:
        return self._retention

    def versions(self) -> list[int]:
        """Retained key versions, oldest first."""
        return sorted(self._ring.records)

    def _is_retained(self, record: KeyRecord, ring: _KeyRing, now: float) -> bool:
        if record.version == ring.current.version:
            return True
        return now < record.created_at + self._retention

    def encrypt(self, plaintext: str) -> EncryptedBlob:
        if not isinstance(plaintext, str):
            raise ValidationError("Plaintext must be a string")
        current = self._ring.current
        nonce = os.urandom(NONCE_BYTES)
        sealed = AESGCM(current.key_material).encrypt(
            nonce, plaintext.encode("utf-8"), _associated_data(current.version)
        )
        return EncryptedBlob(
            cipher_text=sealed[:-TAG_BYTES],
            nonce=nonce,
            auth_tag=sealed[-TAG_BYTES:],
            key_version=current.version,
        )

    def decrypt(self, blob: EncryptedBlob) -> str:
        """
        Decrypt ``blob`` with exactly the key version it names.

        Raises:
            ValidationError: Nonce or tag has the wrong length.
            KeyNotFoundError: The version was purged or never existed.
            AuthenticationTagMismatch: The blob was altered or the key is wrong.
        """
        if len(blob.nonce) != NONCE_BYTES:
            raise ValidationError(f"Nonce must be {NONCE_BYTES} bytes")
        if len(blob.auth_tag) != TAG_BYTES:
            raise ValidationError(f"Authentication tag must be {TAG_BYTES} bytes")

        ring = self._ring
        record = ring.records.get(blob.key_version)
        if record is None or not self._is_retained(record, ring, self._clock()):
            log_security_event(
                "key_version_not_found",
                level=logging.ERROR,
                key_version=blob.key_version,
            )
            raise KeyNotFoundError(details={"key_version": blob.key_version})

        try:
            plaintext = AESGCM(record.key_material).decrypt(
                blob.nonce,
                blob.cipher_text + blob.auth_tag,
                _associated_data(record.version),
            )
        except InvalidTag:
            log_security_event(
                "decryption_tag_mismatch",
                level=logging.ERROR,
                key_version=blob.key_version,
            )
            raise AuthenticationTagMismatch(details={"key_version": blob.key_version})

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError("Decrypted payload is not text")

    def rotate(self) -> KeyRecord:
        """
        Make a fresh key current and purge keys past retention.

        Retention counts from a key's creation, so the key being replaced
        survives the rotation unless it is already older than the window.
        """
        with self._write_lock:
            ring = self._ring
            now = self._clock()
            record = KeyRecord(
                version=ring.current.version + 1,
                key_material=AESGCM.generate_key(bit_length=KEY_BYTES * 8),
                created_at=now,
            )
            records = {
                version: existing
                for version, existing in ring.records.items()
                if now < existing.created_at + self._retention
            }
            records[record.version] = record
            self._ring = _KeyRing(current=record, records=MappingProxyType(records))

        purged = sorted(set(ring.records) - set(records))
        log_security_event(
            "encryption_key_rotated", key_version=record.version, purged=purged
        )
        return record

    def purge_expired(self) -> list[int]:
        """Drop superseded keys past retention. Returns the purged versions."""
        with self._write_lock:
            ring = self._ring
            now = self._clock()
            records = {
                version: record
                for version, record in ring.records.items()
                if self._is_retained(record, ring, now)
            }
            purged = sorted(set(ring.records) - set(records))
            if purged:
                self._ring = _KeyRing(
                    current=ring.current, records=MappingProxyType(records)
                )
        if purged:
            logger.info(f"Purged expired key versions: {purged}")
        return purged


class KeyRotationTask:
    """
    Background asyncio task calling ``KeyManager.rotate`` every ``interval``.

    A failed rotation is logged and retried on the next tick; the task
    only ends when stopped.

    Usage:
        async with KeyRotationTask(manager, interval=86400):
            await serve()
    """

    def __init__(
        self,
        key_manager: KeyManager,
        interval: float = DEFAULT_ROTATION_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval <= 0:
            raise ValidationError("Rotation interval must be positive")
        self._key_manager = key_manager
        self._interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await self._sleep(self._interval)
            try:
                self._key_manager.rotate()
            except Exception:
                logger.exception("Key rotation failed; retrying on next tick")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="key-rotation"
        )
        logger.debug(f"Key rotation started (interval={self._interval}s)")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Key rotation stopped")

    async def __aenter__(self) -> "KeyRotationTask":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
