import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from powgate.config import settings
from powgate.middleware.rate_limit import limiter
from powgate.models.verification import VerificationReason
from powgate.schemas.challenge import VerifyRequest, VerifyResponse
from powgate.services.pow_service import PowService, get_pow_service

router = APIRouter()
logger = structlog.get_logger()

STATUS_BY_REASON = {
    VerificationReason.MALFORMED: status.HTTP_400_BAD_REQUEST,
    VerificationReason.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post("/verify", response_model=VerifyResponse)
@limiter.limit(settings.rate_limit_verifications)
async def verify_solution(
    request: Request,
    verify_data: VerifyRequest,
    pow_service: PowService = Depends(get_pow_service),
):
    """
    Verify a solved challenge.

    A rejected solution is a normal outcome (200, success=false). Only
    unparseable tokens (400) and internal failures (500) change the status.
    """
    result = pow_service.verify_solution(
        app_id=verify_data.app_id,
        token=verify_data.token,
        request_id=request.state.request_id,
    )

    logger.info(
        "solution_verified",
        app_id=verify_data.app_id,
        success=result.success,
        reason=result.reason.value if result.reason else None,
        processing_time_ms=result.meta.processing_time_ms,
    )

    return JSONResponse(
        status_code=STATUS_BY_REASON.get(result.reason, status.HTTP_200_OK),
        content=result.to_dict(),
    )
