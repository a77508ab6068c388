"""Auth-related enums."""

from enum import Enum


class UserAdminRole(str, Enum):
    """
    Site-wide admin roles, independent of per-organization roles.

    - SUPER_ADMIN: full access, including trust management
    - SALES_ADMIN: may create organizations
    - ADMIN: may moderate posts and meetings
    - USER: regular user
    """

    SUPER_ADMIN = "SuperAdmin"
    SALES_ADMIN = "SalesAdmin"
    ADMIN = "Admin"
    USER = "User"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid admin role."""
        return value in cls._value2member_map_


class OrgRole(str, Enum):
    """Role of a user inside one organization."""

    MEMBER = "member"
    ADMIN = "admin"


class AuthType(str, Enum):
    """Identity provider families an organization can use."""

    GOOGLE = "google"
    OIDC = "oidc"  # Generic OpenID Connect (Azure AD and friends)
    DEV = "dev"  # Local development and tests only
