"""
Directory Models
Known users and the roles they fill in orchestrated calls
"""
import logging
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from callbot.domain.errors import DirectoryExhaustedError
from callbot.domain.models.call import CallTarget, Identity, IdentitySet

logger = logging.getLogger(__name__)


class User(BaseModel):
    """Directory entry"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    display_name: str = Field(alias="displayName")

    def to_call_target(self, endpoint_type: Optional[str] = None) -> CallTarget:
        return CallTarget(
            identity=IdentitySet(
                user=Identity(id=self.id, display_name=self.display_name)
            ),
            endpoint_type=endpoint_type
        )


class DirectoryRole(str, Enum):
    """Semantic slot a directory user fills"""
    PRIMARY_TARGET = "primary_target"
    TRANSFER_TARGET = "transfer_target"
    INVITE_TARGET = "invite_target"

    @property
    def position(self) -> int:
        """Position used when no named role mapping is configured."""
        return _ROLE_POSITIONS[self]


_ROLE_POSITIONS = {
    DirectoryRole.PRIMARY_TARGET: 0,
    DirectoryRole.TRANSFER_TARGET: 1,
    DirectoryRole.INVITE_TARGET: 2,
}


class Directory:
    """
    Immutable list of known users, built once at startup.

    Roles resolve through the configured role -> user id mapping when one
    exists for the role, otherwise by position in the user list. A role
    that cannot be resolved raises DirectoryExhaustedError at lookup time.
    """

    def __init__(
        self,
        users: Iterable[User],
        roles: Optional[Mapping[DirectoryRole, str]] = None
    ):
        self._users: Tuple[User, ...] = tuple(users)
        self._roles: Dict[DirectoryRole, str] = dict(roles or {})

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "Directory":
        """
        Build a directory from the `directory` config section.

        Expected shape:
            users: [{id: ..., displayName: ...}, ...]
            roles: {primary_target: <user id>, ...}
        """
        section = section or {}
        users = [User.model_validate(entry) for entry in section.get("users") or []]

        roles: Dict[DirectoryRole, str] = {}
        for name, user_id in (section.get("roles") or {}).items():
            if not user_id:
                continue
            try:
                roles[DirectoryRole(name)] = str(user_id)
            except ValueError:
                raise ValueError(
                    f"Unknown directory role: {name}. "
                    f"Available: {', '.join(r.value for r in DirectoryRole)}"
                )

        logger.info(f"Directory loaded with {len(users)} users and {len(roles)} named roles")
        return cls(users, roles)

    @property
    def users(self) -> Tuple[User, ...]:
        return self._users

    def __len__(self) -> int:
        return len(self._users)

    def get(self, role: DirectoryRole) -> User:
        """Resolve the user filling `role`."""
        user_id = self._roles.get(role)
        if user_id is not None:
            for user in self._users:
                if user.id == user_id:
                    return user
            raise DirectoryExhaustedError(
                role.value,
                f"Directory role '{role.value}' refers to unknown user {user_id}"
            )

        if role.position >= len(self._users):
            raise DirectoryExhaustedError(role.value)
        return self._users[role.position]

    def __repr__(self) -> str:
        return f"<Directory users={len(self._users)} roles={[r.value for r in self._roles]}>"
