"""Destination and token-contract allow-listing.

An allow-list is an explicit opt-in control: when it is not configured the
dimension is unrestricted. A configured list with no entries denies
everything. Membership is exact, case-sensitive string match.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class PolicyDimension(str, Enum):
    """Which allow-list a request was checked against."""

    DESTINATION = "destination"
    CONTRACT = "contract"


@dataclass(frozen=True)
class Allowlist:
    """Set of permitted values, or ``entries=None`` for allow-all."""

    entries: Optional[frozenset[str]] = None

    @classmethod
    def of(cls, values: Iterable[str]) -> "Allowlist":
        """Restricted list of the non-empty values; no values denies everything."""
        return cls(frozenset(v for v in values if v))

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Allowlist":
        """Parse a comma-separated list.

        Unset or blank means allow-all. A value with no entries (",") denies all.
        """
        if raw is None or not raw.strip():
            return ALLOW_ALL
        return cls.of(part.strip() for part in raw.split(","))

    @property
    def is_restricted(self) -> bool:
        return self.entries is not None

    def permits(self, value: str) -> bool:
        if self.entries is None:
            return True
        return value in self.entries

    def __len__(self) -> int:
        return len(self.entries) if self.entries is not None else 0


ALLOW_ALL = Allowlist()


def _describe(allowlist: Allowlist) -> str:
    return f"{len(allowlist)} allowed" if allowlist.is_restricted else "all"


@dataclass(frozen=True)
class AllowlistConfig:
    """Destination and contract allow-lists, fixed for the process lifetime."""

    destinations: Allowlist = ALLOW_ALL
    contracts: Allowlist = ALLOW_ALL

    @classmethod
    def from_settings(cls, settings) -> "AllowlistConfig":
        return cls(
            destinations=Allowlist.parse(settings.allow_dest),
            contracts=Allowlist.parse(settings.allow_token_contracts),
        )


@dataclass(frozen=True)
class PolicyDecision:
    """Result of a policy check."""

    allowed: bool
    dimension: Optional[PolicyDimension] = None

    @property
    def message(self) -> str:
        if self.allowed:
            return "allowed"
        if self.dimension == PolicyDimension.DESTINATION:
            return "destination not allowed"
        return "tokenContract not allowed"


class PolicyGate:
    """Enforces the configured allow-lists on a transfer."""

    def __init__(self, config: AllowlistConfig):
        self.config = config
        logger.info(
            f"Policy: destinations={_describe(config.destinations)} "
            f"contracts={_describe(config.contracts)}"
        )
        for name, allowlist in (
            ("ALLOW_DEST", config.destinations),
            ("ALLOW_TOKEN_CONTRACTS", config.contracts),
        ):
            if allowlist.is_restricted and not len(allowlist):
                logger.warning(f"{name} is set but lists no entries - all transfers denied")

    def check(self, destination: str, contract: str) -> PolicyDecision:
        """Check destination first, then token contract."""
        if not self.config.destinations.permits(destination):
            logger.warning(f"Policy denied destination {destination}")
            return PolicyDecision(allowed=False, dimension=PolicyDimension.DESTINATION)

        if not self.config.contracts.permits(contract):
            logger.warning(f"Policy denied token contract {contract}")
            return PolicyDecision(allowed=False, dimension=PolicyDimension.CONTRACT)

        return PolicyDecision(allowed=True)
