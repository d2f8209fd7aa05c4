"""Caller identity passed into core components."""
from dataclasses import dataclass, field
from typing import Optional

from .errors import PermissionDeniedError


@dataclass(frozen=True)
class AuthContext:
    """Who is performing the current operation.

    Authentication and role storage live outside the core; this only
    carries the result.
    """
    user_id: Optional[int] = None
    role: str = "viewer"
    permissions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def system(cls) -> "AuthContext":
        """Context for unattended operation (MCP server, scheduled sync)."""
        return cls(user_id=None, role="admin", permissions=frozenset({"*"}))

    def current_user_id(self) -> Optional[int]:
        return self.user_id

    def has_permission(self, name: str) -> bool:
        if self.role == "admin" or "*" in self.permissions:
            return True
        return name in self.permissions

    def require_permission(self, name: str) -> None:
        if not self.has_permission(name):
            raise PermissionDeniedError(
                f"Permission denied: {name}", permission=name, role=self.role
            )
