"""Dota 2 positions tracked by the meta refresher."""

from enum import Enum


class Role(str, Enum):
    HC   = "HC"     # hard carry (pos 1)
    MID  = "MID"
    TOP  = "TOP"    # offlane (pos 3)
    SUP4 = "SUP4"
    SUP5 = "SUP5"

    @property
    def key(self) -> str:
        """Cache key and fetch parameter form."""
        return self.value.lower()

    @classmethod
    def parse(cls, raw: str) -> "Role":
        """Case-insensitive lookup. Raises ValueError for unknown roles."""
        return cls(raw.strip().upper())


# Refresh order
ROLES: list[Role] = [Role.HC, Role.MID, Role.TOP, Role.SUP4, Role.SUP5]
