"""Public scan endpoint: /scan/{slug} -> redirect."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

from app.dependencies import get_redirect_gate
from app.services.errors import NotFoundError, GoneError, PasswordRequiredError, ForbiddenError
from app.services.redirect import RedirectGate, extract_client_ip

router = APIRouter()

ERROR_STATUS = {
    NotFoundError: 404,
    GoneError: 410,
    PasswordRequiredError: 401,
    ForbiddenError: 403,
}


@router.get("/{slug}")
async def scan(
    slug: str,
    request: Request,
    password: str | None = None,
    gate: RedirectGate = Depends(get_redirect_gate),
):
    """Check expiry and password, log the scan in the background, then redirect."""
    client_ip = extract_client_ip(
        request.headers,
        request.client.host if request.client else None,
    )
    try:
        outcome = await gate.resolve_and_log(
            slug,
            password,
            client_ip,
            request.headers.get("user-agent", ""),
        )
    except (NotFoundError, GoneError, PasswordRequiredError, ForbiddenError) as e:
        return PlainTextResponse(str(e), status_code=ERROR_STATUS[type(e)])

    return RedirectResponse(outcome.destination, status_code=302)
