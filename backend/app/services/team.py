"""Team resolution over the invitation graph.

A team is the root admin (an admin with no inviter) plus every user that
root invited directly. It is recomputed on every call and never stored.
"""

import logging
import re
from dataclasses import dataclass

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.role import ADMIN
from app.models.user import User
from app.services.errors import InvalidArgumentError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

_USER_ID_RE = re.compile(r"^[a-zA-Z0-9]+$")


@dataclass
class TeamMember:
    id: str
    email: str
    role: str
    invited_by_id: str | None


def validate_user_id(user_id: str) -> None:
    """Fail fast on identifiers that could not have come from this system."""
    if not isinstance(user_id, str) or len(user_id) < 8 or not _USER_ID_RE.match(user_id):
        raise InvalidArgumentError("Invalid user ID format")


def _member(user: User) -> TeamMember:
    return TeamMember(id=user.id, email=user.email, role=user.role, invited_by_id=user.invited_by_id)


class TeamResolver:
    def __init__(self, db: AsyncSession, max_depth: int = DEFAULT_MAX_DEPTH):
        self.db = db
        self.max_depth = max_depth

    async def _get_user(self, user_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _root_with_invitees(self, root_id: str) -> list[TeamMember]:
        result = await self.db.execute(
            select(User)
            .where(or_(User.id == root_id, User.invited_by_id == root_id))
            .order_by(User.created_at)
        )
        return [_member(u) for u in result.scalars().all()]

    async def find_root(self, user: User) -> User | None:
        """Walk up ``invited_by`` links until a root admin is found.

        Returns None if the chain is broken or ``max_depth`` steps pass
        without reaching a root.
        """
        if user.is_root:
            return user

        current = user
        depth = 0
        while current.invited_by_id and depth < self.max_depth:
            validate_user_id(current.invited_by_id)
            inviter = await self._get_user(current.invited_by_id)
            if inviter is None:
                return None
            if inviter.role == ADMIN and inviter.invited_by_id is None:
                return inviter
            current = inviter
            depth += 1
        return None

    async def team_members(self, user_id: str) -> list[TeamMember]:
        validate_user_id(user_id)

        user = await self._get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")

        root = await self.find_root(user)
        if root is None:
            logger.warning("No team root found for user %s, scoping to self", user_id)
            return [_member(user)]

        members = await self._root_with_invitees(root.id)
        if not any(m.id == user.id for m in members):
            members.append(_member(user))
        return members

    async def team_ids_for(self, user_id: str) -> list[str]:
        """IDs of every user whose resources ``user_id`` may see."""
        return [m.id for m in await self.team_members(user_id)]

    async def are_team_members(self, user_id: str, other_id: str) -> bool:
        try:
            validate_user_id(user_id)
            validate_user_id(other_id)
            return other_id in await self.team_ids_for(user_id)
        except (InvalidArgumentError, NotFoundError):
            return False
