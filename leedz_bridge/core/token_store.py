"""
In-memory OAuth token store for the Gmail mailer.

Holds at most one bearer token for the lifetime of the process. A token is
only kept after the provider accepted it, and a periodic probe drops it as
soon as the provider stops accepting it.

State machine:
    EMPTY   -> PROBING   authorize() called
    PROBING -> VALID     profile probe succeeded
    PROBING -> EMPTY     probe failed
    VALID   -> EMPTY     periodic probe failed, 401 on send/draft, expiry
    VALID   -> PROBING   authorize() called again (old token dropped)
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TOKEN_LIFETIME_SECONDS = 60 * 60
PROBE_INTERVAL_SECONDS = 45 * 60


class TokenState(Enum):
    EMPTY = "empty"
    PROBING = "probing"
    VALID = "valid"


class TokenValidationError(Exception):
    """The provider did not accept a deposited token."""


@dataclass(frozen=True)
class Token:
    value: str
    expires_at: float
    validated: bool = True

    def is_live(self, now: float) -> bool:
        return self.validated and self.expires_at > now

    @property
    def expiry_iso(self) -> str:
        return to_iso(self.expires_at)


def to_iso(timestamp: float) -> str:
    stamp = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_iso(value: str) -> float:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    stamp = datetime.fromisoformat(value)
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp.timestamp()


class TokenStore:
    """
    Thread-safe holder of the single live token.

    Args:
        probe: Callable returning True when the provider accepts a token
        lifetime: Seconds a deposited token is trusted for
        probe_interval: Seconds between liveness probes of a stored token
        clock: Time source (seconds since epoch), injectable for tests
    """

    def __init__(
        self,
        probe: Callable[[str], bool],
        lifetime: float = TOKEN_LIFETIME_SECONDS,
        probe_interval: float = PROBE_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._probe = probe
        self.lifetime = lifetime
        self.probe_interval = probe_interval
        self._clock = clock

        self._lock = threading.Lock()
        self._token: Optional[Token] = None
        self._state = TokenState.EMPTY
        self._timer: Optional[threading.Timer] = None
        self._stopped = False
        # Bumped on every write so a slow probe cannot overwrite a newer deposit
        self._generation = 0

    @property
    def state(self) -> TokenState:
        with self._lock:
            self._expire_locked()
            return self._state

    @property
    def probe_active(self) -> bool:
        with self._lock:
            return self._timer is not None

    def current(self) -> Optional[Token]:
        """Return the live token, or None if there is none or it expired."""
        with self._lock:
            self._expire_locked()
            return self._token

    def is_valid(self) -> bool:
        return self.current() is not None

    def authorize(self, value: str) -> Token:
        """
        Deposit a token from the browser extension.

        The previous token is dropped immediately; the new one is stored only
        if the validation probe succeeds.

        Raises:
            TokenValidationError: if the provider rejected the token
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._cancel_timer_locked()
            self._token = None
            self._state = TokenState.PROBING
        logger.info("OAuth token received, validating against Gmail profile")

        accepted = self._probe(value)

        with self._lock:
            if generation != self._generation:
                logger.info("Token deposit superseded by a newer one while probing")
                raise TokenValidationError("Superseded by a newer token")
            if not accepted:
                self._token = None
                self._state = TokenState.EMPTY
                logger.warning("OAuth token rejected by Gmail, not stored")
                raise TokenValidationError("Token validation failed")

            token = Token(value=value, expires_at=self._clock() + self.lifetime, validated=True)
            self._token = token
            self._state = TokenState.VALID
            self._arm_timer_locked(generation)

        logger.info(f"OAuth token validated, expires at {token.expiry_iso}")
        return token

    def adopt(self, value: str, expires_at: float) -> Optional[Token]:
        """
        Take over a token fetched from the primary instance.

        The primary already validated it and keeps probing it, so no timer
        is started here. Returns None if the token is already expired.
        """
        token = Token(value=value, expires_at=expires_at, validated=True)
        with self._lock:
            if not token.is_live(self._clock()):
                return None
            self._generation += 1
            self._cancel_timer_locked()
            self._token = token
            self._state = TokenState.VALID
        logger.info(f"Adopted token from primary instance, expires at {token.expiry_iso}")
        return token

    def invalidate(self, expected: Optional[str] = None, reason: str = "") -> bool:
        """
        Clear the token and stop probing.

        Args:
            expected: Only clear if the stored token still has this value
            reason: Logged explanation

        Returns:
            True if a token was cleared
        """
        with self._lock:
            if self._token is None:
                self._cancel_timer_locked()
                return False
            if expected is not None and self._token.value != expected:
                return False
            self._generation += 1
            self._clear_locked()
        logger.warning(f"OAuth token invalidated{': ' + reason if reason else ''}")
        return True

    def run_probe(self) -> bool:
        """Probe the stored token now; clear it if the provider refuses it."""
        token = self.current()
        if token is None:
            return False
        if self._probe(token.value):
            logger.debug("Periodic token probe succeeded")
            return True
        self.invalidate(expected=token.value, reason="periodic probe failed")
        return False

    def shutdown(self) -> None:
        """Stop probing for good; the token itself stays readable."""
        with self._lock:
            self._stopped = True
            self._cancel_timer_locked()

    def _expire_locked(self) -> None:
        if self._token is not None and not self._token.is_live(self._clock()):
            logger.info("OAuth token expired")
            self._generation += 1
            self._clear_locked()

    def _clear_locked(self) -> None:
        self._token = None
        self._state = TokenState.EMPTY
        self._cancel_timer_locked()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_timer_locked(self, generation: int) -> None:
        if self._stopped:
            return
        timer = threading.Timer(self.probe_interval, self._on_timer, args=(generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        if self.run_probe():
            with self._lock:
                if generation == self._generation and self._token is not None:
                    self._arm_timer_locked(generation)
