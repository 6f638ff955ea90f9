"""Request token required by the DSAT endpoints.

The portal signs every request with an MD5 digest of the form parameters
into which the current local minute (``YYYYMMDDHHmm``) has been spliced.
The upstream service checks the embedded minute, so a token must be
generated for each request and cannot be reused across a minute boundary.
"""

import hashlib
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime

Clock = Callable[[], datetime]
Params = Iterable[tuple[str, str]] | Mapping[str, str]

# (slice of the time string, insertion index), applied in this order
TIME_INSERTIONS: tuple[tuple[slice, int], ...] = (
    (slice(8, 12), 24),  # HHmm
    (slice(4, 8), 12),  # MMDD
    (slice(0, 4), 4),  # YYYY
)

TOKEN_LENGTH = 44


def _pairs(params: Params) -> list[tuple[str, str]]:
    if isinstance(params, Mapping):
        return [(str(k), str(v)) for k, v in params.items()]
    return [(str(k), str(v)) for k, v in params]


def build_query_string(params: Params) -> str:
    """Join parameters as ``k=v`` pairs in the order supplied.

    Values are not URL-encoded; the digest is computed over the raw text.

    Example: [("routeName", "33"), ("dir", "0")] -> "routeName=33&dir=0"
    """
    return "&".join(f"{key}={value}" for key, value in _pairs(params))


def format_token_time(moment: datetime) -> str:
    """Format a datetime as the 12-character ``YYYYMMDDHHmm`` string."""
    return f"{moment.year:04d}{moment.month:02d}{moment.day:02d}{moment.hour:02d}{moment.minute:02d}"


def generate_token(params: Params, clock: Clock | None = None) -> str:
    """Generate the 44-character request token.

    Args:
        params: Request parameters in the exact order the endpoint expects.
            Order matters: it is part of the signed string.
        clock: Returns the current local time. Defaults to ``datetime.now``.

    Returns:
        The MD5 hex digest of the query string with HHmm, MMDD and YYYY
        spliced in at positions 24, 12 and 4 (each insertion applied to the
        array produced by the previous one).
    """
    digest = hashlib.md5(build_query_string(params).encode("utf-8")).hexdigest()
    now = (clock or datetime.now)()
    time_str = format_token_time(now)

    chars: list[str] = list(digest)
    for part, position in TIME_INSERTIONS:
        chars.insert(position, time_str[part])

    return "".join(chars)
