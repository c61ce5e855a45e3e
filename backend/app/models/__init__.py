from app.models.user import User
from app.models.invitation import Invitation
from app.models.qr_code import QRCode, Scan
from app.models.template import Template

__all__ = [
    "User",
    "Invitation",
    "QRCode",
    "Scan",
    "Template",
]
