"""One-time code service.

Generates, rate-limits and verifies short-lived numeric codes keyed by
(identifier, purpose). Each key moves through:

    absent -> created -> verified | expired | max attempts | invalidated -> absent

Every read-check-write step on a key runs under the store's per-key lock,
so two concurrent verifies can never both pass the attempts check.
"""

import asyncio
import contextlib
import hmac
import logging
import math
import re
import secrets
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from fraudwatch_shared.schemas import OTCRecord, utcnow
from pydantic import ValidationError as SchemaError

from fraudwatch_api.config import OTCSettings
from fraudwatch_api.errors import (
    ExpiredError,
    FraudWatchError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from fraudwatch_api.kv import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger("fraudwatch-otc")

DEFAULT_PURPOSE = "verification"

_CANDIDATE_FORMAT = re.compile(r"^\d{4,6}$")


# =============================================================================
# Results
# =============================================================================


@dataclass
class OTCResult:
    """Outcome of a generate or verify call."""

    success: bool
    error: str | None = None
    message: str | None = None
    code: str | None = None
    expires_at: datetime | None = None
    expires_in_minutes: int | None = None
    wait_seconds: int | None = None
    remaining_attempts: int | None = None

    def to_dict(self) -> dict:
        """Fields that are set, for JSON responses."""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class OTCStatus:
    """Snapshot of a code without verifying it."""

    exists: bool
    expired: bool = False
    verified: bool = False
    remaining_seconds: int = 0
    attempts: int = 0
    max_attempts: int = 0


class InvalidCodeError(ValidationError):
    """Wrong code; carries how many attempts are left."""

    def __init__(self, remaining_attempts: int):
        super().__init__(
            f"Invalid code. {remaining_attempts} attempt(s) remaining.", code="invalid"
        )
        self.remaining_attempts = remaining_attempts


def generate_code(length: int = 6) -> str:
    """Random numeric code from the OS CSPRNG."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


# =============================================================================
# Service
# =============================================================================


class OTCService:
    """Issues and checks one-time codes."""

    def __init__(
        self,
        settings: OTCSettings | None = None,
        store: KeyValueStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the service.

        Args:
            settings: Code length, TTL, attempt and cooldown limits.
            store: Where records live. Defaults to a fresh in-process store.
            clock: Returns the current aware UTC time. Injected by tests.
        """
        self.settings = settings or OTCSettings()
        self._clock = clock or utcnow
        self.store = store if store is not None else InMemoryKeyValueStore(clock=self._clock)
        self._sweep_task: asyncio.Task | None = None
        self._grace_tasks: set[asyncio.Task] = set()

    @staticmethod
    def make_key(identifier: str, purpose: str = DEFAULT_PURPOSE) -> str:
        """Store key for an (identifier, purpose) pair."""
        return f"{purpose}:{identifier.lower().strip()}"

    def _key(self, identifier: str, purpose: str) -> str:
        if not isinstance(identifier, str) or not identifier.strip():
            raise ValidationError("Identifier is required")
        if not isinstance(purpose, str) or not purpose.strip():
            raise ValidationError("Purpose is required")
        return self.make_key(identifier, purpose)

    async def _load(self, key: str) -> OTCRecord | None:
        raw = await self.store.get(key)
        if raw is None:
            return None
        try:
            return OTCRecord.model_validate(raw)
        except SchemaError:
            logger.warning(f"Ignoring malformed OTC record for key {key}")
            return None

    async def _save(self, key: str, record: OTCRecord) -> None:
        await self.store.set(key, record.model_dump(mode="json"))

    @staticmethod
    def _failure(error: FraudWatchError) -> OTCResult:
        return OTCResult(
            success=False,
            error=error.code,
            message=error.message,
            wait_seconds=getattr(error, "wait_seconds", None),
            remaining_attempts=getattr(error, "remaining_attempts", None),
        )

    # -------------------------------------------------------------------------
    # Generate
    # -------------------------------------------------------------------------

    async def generate(
        self, identifier: str, purpose: str = DEFAULT_PURPOSE
    ) -> OTCResult:
        """Issue a new code unless one was issued within the cooldown.

        Returns:
            OTCResult with the plaintext code and expiry on success, or
            ``error="cooldown"`` with ``wait_seconds``.
        """
        try:
            return await self._generate(identifier, purpose)
        except FraudWatchError as e:
            return self._failure(e)

    async def _generate(self, identifier: str, purpose: str) -> OTCResult:
        key = self._key(identifier, purpose)
        async with self.store.lock(key):
            now = self._clock()
            existing = await self._load(key)
            if existing is not None and not existing.is_expired(now):
                remaining = existing.cooldown_remaining(
                    timedelta(seconds=self.settings.cooldown_seconds), now
                )
                if remaining > 0:
                    wait = math.ceil(remaining)
                    raise RateLimitError(
                        f"Please wait {wait} seconds before requesting a new code.",
                        code="cooldown",
                        wait_seconds=wait,
                    )

            record = OTCRecord(
                identifier=identifier.lower().strip(),
                purpose=purpose,
                code=generate_code(self.settings.code_length),
                created_at=now,
                expires_at=now + timedelta(minutes=self.settings.ttl_minutes),
            )
            await self._save(key, record)

        logger.info(f"Issued {purpose} code for {record.identifier}")
        return OTCResult(
            success=True,
            message="Code generated successfully.",
            code=record.code,
            expires_at=record.expires_at,
            expires_in_minutes=self.settings.ttl_minutes,
        )

    # -------------------------------------------------------------------------
    # Verify
    # -------------------------------------------------------------------------

    async def verify(
        self, identifier: str, purpose: str, candidate: str
    ) -> OTCResult:
        """Check a candidate code.

        A malformed candidate fails with ``invalid_format`` and does not use
        up an attempt. The attempt that exhausts the limit also removes the
        record, so the next call reports ``not_found``.
        """
        try:
            return await self._verify(identifier, purpose, candidate)
        except FraudWatchError as e:
            return self._failure(e)

    async def _verify(self, identifier: str, purpose: str, candidate: str) -> OTCResult:
        key = self._key(identifier, purpose)
        if not isinstance(candidate, str) or not _CANDIDATE_FORMAT.match(
            candidate.strip()
        ):
            raise ValidationError("Code must be 4-6 digits", code="invalid_format")
        candidate = candidate.strip()

        async with self.store.lock(key):
            now = self._clock()
            record = await self._load(key)

            if record is None:
                raise NotFoundError("No code found. Please request a new one.")

            if record.verified:
                raise ExpiredError("This code has already been used.", code="already_used")

            if record.is_expired(now):
                await self.store.delete(key)
                raise ExpiredError("Code has expired. Please request a new one.")

            if record.attempts >= self.settings.max_attempts:
                await self.store.delete(key)
                raise RateLimitError(
                    "Maximum attempts exceeded. Please request a new code.",
                    code="max_attempts",
                )

            record.attempts += 1

            if not hmac.compare_digest(record.code, candidate):
                remaining = self.settings.max_attempts - record.attempts
                if remaining <= 0:
                    await self.store.delete(key)
                else:
                    await self._save(key, record)
                raise InvalidCodeError(remaining)

            record.verified = True
            record.verified_at = now
            await self._save(key, record)
            self._schedule_grace_delete(key, record.created_at)

        logger.info(f"Verified {purpose} code for {record.identifier}")
        return OTCResult(success=True, message="Code verified successfully.")

    def _schedule_grace_delete(self, key: str, created_at: datetime) -> None:
        task = asyncio.create_task(self._delete_after_grace(key, created_at))
        self._grace_tasks.add(task)
        task.add_done_callback(self._grace_tasks.discard)

    async def _delete_after_grace(self, key: str, created_at: datetime) -> None:
        await asyncio.sleep(self.settings.verified_grace_seconds)
        async with self.store.lock(key):
            record = await self._load(key)
            # A newer code may have been issued for the key in the meantime
            if record is not None and record.verified and record.created_at == created_at:
                await self.store.delete(key)

    # -------------------------------------------------------------------------
    # Invalidate / Status
    # -------------------------------------------------------------------------

    async def invalidate(self, identifier: str, purpose: str = DEFAULT_PURPOSE) -> bool:
        """Delete the code for a key. Returns True if one existed."""
        key = self._key(identifier, purpose)
        async with self.store.lock(key):
            return await self.store.delete(key)

    async def status(self, identifier: str, purpose: str = DEFAULT_PURPOSE) -> OTCStatus:
        """Describe the code for a key without spending an attempt."""
        key = self._key(identifier, purpose)
        async with self.store.lock(key):
            record = await self._load(key)
        if record is None:
            return OTCStatus(exists=False, max_attempts=self.settings.max_attempts)

        now = self._clock()
        return OTCStatus(
            exists=True,
            expired=record.is_expired(now),
            verified=record.verified,
            remaining_seconds=max(0, int(record.seconds_until_expiry(now))),
            attempts=record.attempts,
            max_attempts=self.settings.max_attempts,
        )

    async def store_size(self) -> int:
        """Number of records currently held."""
        return len(await self.store.keys())

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    async def sweep(self) -> int:
        """Remove expired codes and codes verified longer than the retention.

        Malformed records are logged and skipped.

        Returns:
            Number of records removed.
        """
        removed = 0
        retention = timedelta(seconds=self.settings.verified_retention_seconds)

        for key in await self.store.keys():
            async with self.store.lock(key):
                raw = await self.store.get(key)
                if raw is None:
                    continue
                try:
                    record = OTCRecord.model_validate(raw)
                except SchemaError:
                    logger.warning(f"Sweep skipped malformed OTC record {key}")
                    continue

                now = self._clock()
                stale_verified = (
                    record.verified
                    and record.verified_at is not None
                    and now - record.verified_at > retention
                )
                if record.is_expired(now) or stale_verified:
                    await self.store.delete(key)
                    removed += 1

        if removed > 0:
            logger.info(f"Sweep removed {removed} one-time code(s)")
        return removed

    async def start_sweeper(self) -> None:
        """Start the periodic background sweep."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(
                self._periodic_sweep(self.settings.sweep_interval_seconds)
            )

    async def stop_sweeper(self) -> None:
        """Stop the sweep and any pending post-verification deletes."""
        tasks = list(self._grace_tasks)
        if self._sweep_task:
            tasks.append(self._sweep_task)
            self._sweep_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _periodic_sweep(self, interval_seconds: int) -> None:
        """Sweep on a fixed timer, independent of request traffic."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep()
            except Exception:
                logger.exception("OTC sweep failed")
