"""
Resource ownership registry

Single source of truth for resource types that support ownership-based
authorization: where the owner id lives, which permission overrides
ownership for the whole type, and which actions ownership can satisfy.
Both the decision engine and the ownership service read from here.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from app.core.permissions import OWNERSHIP_ACTIONS, Permission
from app.models.content import Blog, BlogComment, Media, Recruitment


@dataclass(frozen=True)
class ResourcePolicy:
    resource_type: str
    model: type
    owner_field: str
    manage_all_permission: str
    ownership_actions: Tuple[str, ...]

    @property
    def owner_column(self):
        return getattr(self.model, self.owner_field)

    def is_ownership_action(self, action: str) -> bool:
        return action in self.ownership_actions


RESOURCE_POLICIES: Dict[str, ResourcePolicy] = {
    "blogs": ResourcePolicy(
        resource_type="blogs",
        model=Blog,
        owner_field="author_id",
        manage_all_permission=Permission.BLOGS_MANAGE_ALL,
        ownership_actions=OWNERSHIP_ACTIONS["blogs"],
    ),
    "media": ResourcePolicy(
        resource_type="media",
        model=Media,
        owner_field="uploaded_by_id",
        manage_all_permission=Permission.MEDIA_MANAGE_ALL,
        ownership_actions=OWNERSHIP_ACTIONS["media"],
    ),
    "recruitment": ResourcePolicy(
        resource_type="recruitment",
        model=Recruitment,
        owner_field="author_id",
        manage_all_permission=Permission.RECRUITMENT_MANAGE_ALL,
        ownership_actions=OWNERSHIP_ACTIONS["recruitment"],
    ),
    "comments": ResourcePolicy(
        resource_type="comments",
        model=BlogComment,
        owner_field="author_id",
        manage_all_permission=Permission.COMMENTS_MANAGE_ALL,
        ownership_actions=OWNERSHIP_ACTIONS["comments"],
    ),
}

# Alternate spellings used by older routes
RESOURCE_ALIASES: Dict[str, str] = {
    "blogcomments": "comments",
    "blog_comments": "comments",
}


def get_resource_policy(resource_type: Optional[str]) -> Optional[ResourcePolicy]:
    """
    Look up the ownership policy for a resource type.

    Returns None for unknown types; callers must treat that as
    "no ownership possible".
    """
    if not resource_type:
        return None
    key = resource_type.strip().lower()
    key = RESOURCE_ALIASES.get(key, key)
    return RESOURCE_POLICIES.get(key)


def manage_all_permission_for(resource_type: str) -> Optional[str]:
    policy = get_resource_policy(resource_type)
    return policy.manage_all_permission if policy else None


def is_ownership_action(resource_type: str, action: str) -> bool:
    """Whether ownership can satisfy `action` on `resource_type`."""
    policy = get_resource_policy(resource_type)
    return policy is not None and policy.is_ownership_action(action)
