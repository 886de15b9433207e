"""Math captcha used to gate public registration."""
import hashlib
import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from vpnportal.config import get_settings
from vpnportal.services.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class CaptchaChallenge:
    id: str
    question: str


@dataclass
class _Entry:
    answer_hash: bytes
    expires_at: float


def _hash_answer(answer: int) -> bytes:
    return hashlib.sha256(str(answer).encode("utf-8")).digest()


class CaptchaStore:
    """Thread-safe in-memory store of outstanding challenges."""

    def __init__(self, ttl_seconds: int = 120, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def challenge(self) -> CaptchaChallenge:
        a = secrets.randbelow(9) + 1
        b = secrets.randbelow(9) + 1
        challenge_id = secrets.token_urlsafe(8)
        with self._lock:
            self._entries[challenge_id] = _Entry(
                answer_hash=_hash_answer(a + b),
                expires_at=self.clock() + self.ttl_seconds,
            )
        return CaptchaChallenge(id=challenge_id, question=f"{a} + {b}")

    def verify(self, challenge_id: str, answer: int) -> None:
        """Check and consume a challenge. Raises ValidationError on any failure."""
        with self._lock:
            entry = self._entries.get(challenge_id)
            if entry is None:
                raise ValidationError("Unknown captcha")
            if self.clock() > entry.expires_at:
                del self._entries[challenge_id]
                raise ValidationError("Captcha expired")
            if not hmac.compare_digest(_hash_answer(answer), entry.answer_hash):
                raise ValidationError("Invalid captcha answer")
            del self._entries[challenge_id]

    def sweep(self) -> int:
        """Remove expired challenges; returns how many were dropped."""
        now = self.clock()
        with self._lock:
            expired = [k for k, v in self._entries.items() if now > v.expires_at]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug("Swept %d expired captchas", len(expired))
        return len(expired)


_captcha_store: Optional[CaptchaStore] = None


def get_captcha_store() -> CaptchaStore:
    """Get or create the process-wide CaptchaStore singleton."""
    global _captcha_store
    if _captcha_store is None:
        _captcha_store = CaptchaStore(ttl_seconds=get_settings().captcha_ttl_seconds)
    return _captcha_store
