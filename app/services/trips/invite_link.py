from app.core.config import settings


def generate_invite_link(token: str) -> str:
    """
    Returns the frontend join page URL for an invitation token
    """
    return f"{settings.FRONTEND_BASE_URL.rstrip('/')}/invitations/join/{token}"
