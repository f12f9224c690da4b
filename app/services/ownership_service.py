"""
Resource Ownership Service

Resolves the owning user of CMS resources for ownership-based authorization.
Unknown resource types and missing resources resolve to "not owned".
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, true, false
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import Principal
from app.core.resources import get_resource_policy, is_ownership_action

logger = logging.getLogger(__name__)


class OwnershipService:
    """
    Owner lookups against the entity tables.

    The only coupling to entity schemas is the single owner column named in
    the resource registry.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_owner_id(self, resource_type: str, resource_id: int) -> Optional[int]:
        """
        Get the owning user id of a resource.

        Returns None when the type has no ownership semantics or the
        resource does not exist.
        """
        policy = get_resource_policy(resource_type)
        if policy is None:
            logger.debug(f"No ownership policy for resource type '{resource_type}'")
            return None

        result = await self.db.execute(
            select(policy.owner_column).where(policy.model.id == resource_id)
        )
        return result.scalar_one_or_none()

    async def is_owner(self, principal: Principal, resource_type: str, resource_id: int) -> bool:
        owner_id = await self.get_owner_id(resource_type, resource_id)
        return owner_id is not None and owner_id == principal.user_id

    def is_ownership_action(self, resource_type: str, action: str) -> bool:
        return is_ownership_action(resource_type, action)

    async def check_bulk_ownership(
        self,
        principal: Principal,
        resource_type: str,
        action: str,
        resource_ids: Sequence[int],
    ) -> List[bool]:
        """
        Check ownership for each id independently.

        Returns a list of booleans matching the input order. Super admins and
        manage-all holders get all True without touching the store.
        """
        if not resource_ids:
            return []

        if principal.is_super_admin:
            return [True] * len(resource_ids)

        policy = get_resource_policy(resource_type)
        if policy is None:
            return [False] * len(resource_ids)

        if principal.has(policy.manage_all_permission):
            return [True] * len(resource_ids)

        if not policy.is_ownership_action(action):
            return [False] * len(resource_ids)

        # One batched read; a single session cannot run queries concurrently
        result = await self.db.execute(
            select(policy.model.id, policy.owner_column).where(
                policy.model.id.in_(set(resource_ids))
            )
        )
        owners: Dict[int, Optional[int]] = {row[0]: row[1] for row in result.all()}

        return [
            owners.get(resource_id) is not None and owners.get(resource_id) == principal.user_id
            for resource_id in resource_ids
        ]

    def ownership_filter(self, principal: Principal, resource_type: str):
        """
        Query filter scoping a listing to what the principal may see.

        Everything for super admins and manage-all holders, own rows for
        everyone else, nothing for types without ownership semantics.
        """
        if principal.is_super_admin:
            return true()

        policy = get_resource_policy(resource_type)
        if policy is None:
            return false()

        if principal.has(policy.manage_all_permission):
            return true()

        return policy.owner_column == principal.user_id
