"""FastAPI dependencies that build request-scoped services."""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.db.postgres import get_db
from app.services.analytics import AnalyticsAggregator
from app.services.errors import InvalidArgumentError, NotFoundError
from app.services.redirect import RedirectGate
from app.services.scan_recorder import ScanRecorder
from app.services.team import TeamResolver


def get_scan_recorder(request: Request) -> ScanRecorder | None:
    """The process-wide recorder started in the app lifespan, if any."""
    return getattr(request.app.state, "scan_recorder", None)


def get_team_resolver(db: AsyncSession = Depends(get_db)) -> TeamResolver:
    return TeamResolver(db, max_depth=get_settings().team_max_depth)


def get_redirect_gate(
    db: AsyncSession = Depends(get_db),
    recorder: ScanRecorder | None = Depends(get_scan_recorder),
) -> RedirectGate:
    return RedirectGate(db, recorder, get_settings().public_base_url)


def get_analytics(
    db: AsyncSession = Depends(get_db),
    team_resolver: TeamResolver = Depends(get_team_resolver),
) -> AnalyticsAggregator:
    return AnalyticsAggregator(db, team_resolver)


async def team_ids_or_404(team_resolver: TeamResolver, user_id: str) -> list[str]:
    """Resolve the caller's team, translating resolver failures to HTTP errors."""
    try:
        return await team_resolver.team_ids_for(user_id)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
