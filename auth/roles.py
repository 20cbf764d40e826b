"""
auth/roles.py -- Closed role enumeration with an explicit ordinal table.

Roles travel as plain strings inside JWTs and the users table. Role.parse()
is the only way back into the enum, so an unknown string (tampered token,
bad DB row) is rejected instead of compared ad hoc.

Hierarchy: USER < ADMIN < SUPER_ADMIN. has_at_least() uses the ordinal
table; set-membership checks (auth/guard.py has_role) ignore it.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @classmethod
    def parse(cls, value: str) -> Role | None:
        """Return the Role for value (case-insensitive), or None if unknown."""
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None

    @property
    def rank(self) -> int:
        return _RANK[self]

    def has_at_least(self, minimum: Role) -> bool:
        return self.rank >= minimum.rank


_RANK: dict[Role, int] = {
    Role.USER: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}
