from app.models.permission import Permission, role_permissions
from app.models.role import Role
from app.models.user import User
from app.models.content import Blog, BlogComment, Media, Recruitment

__all__ = [
    "Permission",
    "role_permissions",
    "Role",
    "User",
    "Blog",
    "BlogComment",
    "Media",
    "Recruitment",
]
