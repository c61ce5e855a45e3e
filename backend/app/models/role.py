"""Team roles and their permissions."""

ADMIN = "admin"
EDITOR = "editor"
VIEWER = "viewer"

ROLES = (ADMIN, EDITOR, VIEWER)

# Roles an admin may hand out through invitations or role changes
ASSIGNABLE_ROLES = (EDITOR, VIEWER)


# Default permissions for each role
ROLE_PERMISSIONS = {
    ADMIN: {
        "manage_users": True,
        "manage_qr_codes": True,
        "view_qr_codes": True,
        "manage_templates": True,
        "view_templates": True,
        "view_stats": True,
    },
    EDITOR: {
        "manage_users": False,
        "manage_qr_codes": True,
        "view_qr_codes": True,
        "manage_templates": True,
        "view_templates": True,
        "view_stats": True,
    },
    VIEWER: {
        "manage_users": False,
        "manage_qr_codes": False,
        "view_qr_codes": True,
        "manage_templates": False,
        "view_templates": True,
        "view_stats": True,
    },
}
