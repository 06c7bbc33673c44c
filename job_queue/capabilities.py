"""
Capability negotiation — decide once per readiness whether promotion can run
as a single server-side script.

Scripting (EVAL) appeared in Redis 2.6.0; anything older, or a store that
reports no version at all, gets the three-step fallback.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from models.schemas import PromotionPath

logger = structlog.get_logger()

Version = tuple[int, int, int]

MIN_ATOMIC_VERSION: Version = (2, 6, 0)

_VERSION_PART = re.compile(r"\d+")


def parse_version(raw: str) -> Optional[Version]:
    """
    Turn a reported version string into a (major, minor, patch) triple.

    "7.2.4" → (7, 2, 4), "6.0.0-rc1" → (6, 0, 0), "5" → (5, 0, 0).
    Returns None when no numeric part can be found.
    """
    if not raw:
        return None
    parts = []
    for piece in str(raw).split(".")[:3]:
        match = _VERSION_PART.match(piece.strip())
        if not match:
            break
        parts.append(int(match.group(0)))
    if not parts:
        return None
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def meets_minimum(version: Version, minimum: Version = MIN_ATOMIC_VERSION) -> bool:
    major, minor, patch = version
    min_major, min_minor, min_patch = minimum
    if major != min_major:
        return major > min_major
    if minor != min_minor:
        return minor > min_minor
    return patch >= min_patch


@dataclass(frozen=True)
class Capabilities:
    """Outcome of one negotiation. Replaced, never mutated."""
    atomic_promotion: bool
    server_version: Optional[Version] = None
    reason: str = ""

    @property
    def path(self) -> PromotionPath:
        return PromotionPath.ATOMIC if self.atomic_promotion else PromotionPath.FALLBACK


def negotiate(
    version: Optional[Version],
    force_fallback: bool = False,
    minimum: Version = MIN_ATOMIC_VERSION,
) -> Capabilities:
    if force_fallback:
        caps = Capabilities(False, version, "fallback forced by options")
    elif version is None:
        caps = Capabilities(False, None, "store reported no version")
    elif meets_minimum(version, minimum):
        caps = Capabilities(True, version, "server supports scripting")
    else:
        caps = Capabilities(False, version, "server older than %d.%d.%d" % minimum)

    logger.info("capabilities_negotiated",
                path=caps.path.value,
                server_version=".".join(map(str, version)) if version else None,
                reason=caps.reason)
    return caps
