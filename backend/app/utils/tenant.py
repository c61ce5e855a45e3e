"""Team-scoping utilities for filtering queries by owner."""

from app.models.user import User


def team_filter(model, team_ids: list[str]):
    """
    Return a SQLAlchemy filter clause restricting ``model`` to rows owned by a team.

    Usage:
        team_ids = await TeamResolver(db).team_ids_for(current_user.id)
        query = select(QRCode).where(team_filter(QRCode, team_ids))
    """
    return model.owner_id.in_(team_ids)


def set_owner(obj, user: User):
    """
    Set ownership on a model instance before creation.

    Ownership always belongs to the creating user, never to the team.

    Usage:
        qr = QRCode(original_url="https://example.com", ...)
        set_owner(qr, current_user)
    """
    obj.owner_id = user.id
