"""Sequential identifier generation (receipt and reference numbers)"""
import asyncio
import logging
import re
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from domain.clock import Clock, SystemClock, coerce_utc
from domain.entities import PeriodCounter
from domain.enums import ResetPeriod
from domain.exceptions import TransientStorageError, ValidationError
from domain.repositories import DocumentStore
from domain.value_objects import CounterSnapshot, NumberingScope, ParsedIdentifier
from infrastructure.config import Settings, get_settings

logger = logging.getLogger(__name__)

_PERIOD_FORMATS = {
    ResetPeriod.DAILY: "%d%m%Y",
    ResetPeriod.MONTHLY: "%m%Y",
    ResetPeriod.YEARLY: "%Y",
}

_FALLBACK_MARKER = re.compile(r"(^|-)T\d+$")


def _resolve_timezone(name: str) -> tzinfo:
    """The lodge timezone, or UTC when the tz database does not know it"""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %s; numbering periods fall back to UTC", name)
        return timezone.utc


def period_key(reset_period: ResetPeriod, at: datetime, tz: Optional[tzinfo] = None) -> str:
    """DDMMYYYY, MMYYYY or YYYY for the instant `at`, read on the wall clock of `tz`"""
    if tz is not None:
        at = at.astimezone(tz)
    return at.strftime(_PERIOD_FORMATS[ResetPeriod(reset_period)])


def format_identifier(scope: NumberingScope, period: str, counter: int) -> str:
    body = f"{period}-{counter:0{scope.counter_width}d}"
    if scope.prefix:
        return f"{scope.prefix}-{body}"
    return body


def is_fallback(identifier: str) -> bool:
    """True for the timestamp-based identifiers issued when the counter was unavailable"""
    return bool(_FALLBACK_MARKER.search(identifier))


class SequentialNumberGenerator:
    """Issues unique, period-scoped identifiers from an atomic per-period counter"""

    def __init__(self, store: DocumentStore, clock: Optional[Clock] = None,
                 settings: Optional[Settings] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.timezone = _resolve_timezone(self.settings.business_timezone)

    async def generate(self, scope: NumberingScope, at: Optional[datetime] = None) -> str:
        """Next identifier for the period containing `at` (now by default).

        Contention is retried with exponential backoff. Once the attempts are
        exhausted, or the period has used every counter that fits the scope's
        width, a timestamp identifier marked with ``T`` is returned instead, so
        callers always get a value.
        """
        at = coerce_utc(at) if at else self.clock.now()
        period = period_key(scope.reset_period, at, self.timezone)
        attempts = self.settings.counter_max_attempts

        for attempt in range(attempts):
            try:
                counter = await self._increment(scope, period, at)
                if counter < 10 ** scope.counter_width:
                    return format_identifier(scope, period, counter)
                fallback = self._fallback_identifier(scope, period)
                logger.error(
                    "Counter %s/%s exhausted at %d (%d digits); issued non-sequential identifier %s",
                    scope.collection, period, counter, scope.counter_width, fallback
                )
                return fallback
            except TransientStorageError as exc:
                if attempt + 1 >= attempts:
                    break
                delay = self.settings.counter_backoff_base_seconds * (2 ** attempt)
                logger.warning(
                    "Counter %s/%s contended (attempt %d/%d), retrying in %.3fs: %s",
                    scope.collection, period, attempt + 1, attempts, delay, exc
                )
                await asyncio.sleep(delay)

        fallback = self._fallback_identifier(scope, period)
        logger.error(
            "Counter %s/%s unavailable after %d attempts; issued non-sequential identifier %s",
            scope.collection, period, attempts, fallback
        )
        return fallback

    async def _increment(self, scope: NumberingScope, period: str, at: datetime) -> int:
        async with self.store.transaction() as txn:
            data = await txn.get(scope.collection, period)
            if data is None:
                counter = PeriodCounter(id=period, counter=1, created_at=at, updated_at=at)
            else:
                counter = PeriodCounter.from_document(data)
                counter.counter += 1
                counter.updated_at = at
            txn.set(scope.collection, period, counter.to_document())
        return counter.counter

    def _fallback_identifier(self, scope: NumberingScope, period: str) -> str:
        stamp = int(self.clock.now().timestamp() * 1_000_000)
        body = f"{period}-T{stamp}"
        if scope.prefix:
            return f"{scope.prefix}-{body}"
        return body

    def parse(self, identifier: str, scope: NumberingScope) -> ParsedIdentifier:
        """Split an identifier into prefix, period and counter.

        Strict: the prefix, the period layout and the counter width must all
        match the scope. Fallback identifiers are rejected since they carry no
        counter.
        """
        if not identifier or is_fallback(identifier):
            raise ValidationError.single(
                "identifier", f"'{identifier}' is not a sequential {scope.name} number", "INVALID_IDENTIFIER"
            )

        parts = identifier.split("-")
        expected_parts = 3 if scope.prefix else 2
        if len(parts) != expected_parts:
            raise ValidationError.single(
                "identifier", f"'{identifier}' does not match the {scope.name} format", "INVALID_IDENTIFIER_FORMAT"
            )

        prefix = None
        if scope.prefix:
            prefix = parts.pop(0)
            if prefix != scope.prefix:
                raise ValidationError.single(
                    "identifier", f"Expected prefix {scope.prefix}, got {prefix}", "INVALID_IDENTIFIER_PREFIX"
                )

        period, counter = parts
        try:
            parsed_period = datetime.strptime(period, _PERIOD_FORMATS[scope.reset_period])
        except ValueError:
            parsed_period = None
        if parsed_period is None or parsed_period.strftime(_PERIOD_FORMATS[scope.reset_period]) != period:
            raise ValidationError.single(
                "identifier", f"Invalid period '{period}' in {identifier}", "INVALID_IDENTIFIER_PERIOD"
            )

        if len(counter) != scope.counter_width or not counter.isdigit():
            raise ValidationError.single(
                "identifier",
                f"Counter must be exactly {scope.counter_width} digits in {identifier}",
                "INVALID_IDENTIFIER_COUNTER"
            )

        return ParsedIdentifier(prefix=prefix, period=period, counter=int(counter))

    async def peek(self, scope: NumberingScope, at: Optional[datetime] = None) -> CounterSnapshot:
        """Current counter and the identifier the next generate would return; read-only"""
        at = coerce_utc(at) if at else self.clock.now()
        period = period_key(scope.reset_period, at, self.timezone)
        data = await self.store.get(scope.collection, period)
        current = PeriodCounter.from_document(data).counter if data else 0
        return CounterSnapshot(
            period=period,
            counter=current,
            next_identifier=format_identifier(scope, period, current + 1)
        )

    async def reset(self, scope: NumberingScope, period: str, value: int = 0) -> None:
        """Administrative: set a period's counter; the next identifier uses value + 1"""
        if value < 0:
            raise ValidationError.single("value", "Counter value cannot be negative", "INVALID_COUNTER_VALUE")
        now = self.clock.now()
        async with self.store.transaction() as txn:
            data = await txn.get(scope.collection, period)
            if data is None:
                counter = PeriodCounter(id=period, counter=value, created_at=now, updated_at=now)
            else:
                counter = PeriodCounter.from_document(data)
                counter.counter = value
                counter.updated_at = now
            txn.set(scope.collection, period, counter.to_document())
        logger.warning("Counter %s/%s reset to %d", scope.collection, period, value)
