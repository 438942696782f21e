"""Tier roles and generation-tagged tier names."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TierRole(StrEnum):
    """Logical role of a cache tier."""
    STATIC = "static"
    DYNAMIC = "dynamic"
    RUNTIME = "runtime"


# Order used when a lookup may be answered by any tier.
LOOKUP_ORDER: tuple[TierRole, ...] = (TierRole.STATIC, TierRole.DYNAMIC, TierRole.RUNTIME)


@dataclass(frozen=True)
class TierNaming:
    """Maps (role, version_tag) to the external tier name.

    Names take the form "<prefix>-<role>-v<version>", e.g.
    "offline-app-static-v3.0". Only the three names for the current version
    are valid; anything else found in the store is garbage once activation
    completes.
    """

    prefix: str
    version_tag: str

    def name(self, role: TierRole) -> str:
        return f"{self.prefix}-{role}-v{self.version_tag}"

    def valid_names(self) -> set[str]:
        return {self.name(role) for role in TierRole}

    def lookup_names(self) -> list[str]:
        return [self.name(role) for role in LOOKUP_ORDER]
