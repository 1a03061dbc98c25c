import structlog
from fastapi import APIRouter, Depends, Request

from powgate.config import settings
from powgate.middleware.rate_limit import limiter
from powgate.models.challenge import ChallengeHints
from powgate.schemas.challenge import ChallengeCreate, ChallengeResponse
from powgate.services import challenge_codec
from powgate.services.pow_service import PowService, get_pow_service

router = APIRouter()
logger = structlog.get_logger()


@router.post("/challenge", response_model=ChallengeResponse)
@limiter.limit(settings.rate_limit_challenges)
async def create_challenge(
    request: Request,
    challenge_data: ChallengeCreate,
    pow_service: PowService = Depends(get_pow_service),
):
    """
    Request a proof-of-work challenge.

    The client must find the number whose hash matches `targetHash`, then
    echo the challenge back with that number to /verify.
    """
    hints = challenge_data.client_hints
    challenge = pow_service.generate_challenge(
        app_id=challenge_data.app_id,
        hints=ChallengeHints(difficulty=hints.difficulty, expires=hints.expires) if hints else None,
    )

    logger.info(
        "challenge_issued",
        app_id=challenge_data.app_id,
        max_number=challenge.max_number,
        expires_at=challenge.expires_at,
    )

    return ChallengeResponse(**challenge_codec.encode(challenge))
