"""Role permission helper sets."""

from wecarry.db.enums.auth import UserAdminRole

# Site-wide admins (may edit any post, see any meeting's invites)
SITE_ADMIN_ROLES = {
    UserAdminRole.SUPER_ADMIN,
    UserAdminRole.SALES_ADMIN,
    UserAdminRole.ADMIN,
}

# Roles that can create organizations and edit any of them
ROLES_CAN_CREATE_ORGANIZATION = {UserAdminRole.SUPER_ADMIN, UserAdminRole.SALES_ADMIN}

# Roles that can create or remove organization trusts
ROLES_CAN_MANAGE_TRUST = {UserAdminRole.SUPER_ADMIN}
