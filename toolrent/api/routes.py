import logging

from fastapi import APIRouter, Depends, Query, Request, Response

from toolrent.api.dependencies import current_actor, require_moderator
from toolrent.errors import PermissionDenied, SubmissionValidationError
from toolrent.models.submission import Actor, Moderator, Submission, SubmissionStatus
from toolrent.schemas.api import (
    ApprovalOut,
    ComparisonOut,
    CreateSubmissionRequest,
    DecisionRequest,
    ProductOut,
    ProductPageOut,
    PurgeOut,
    ResubmitRequest,
    SubmissionOut,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _out(submission: Submission) -> SubmissionOut:
    return SubmissionOut.model_validate(submission.to_dict())


def _page_size(request: Request, limit: int | None) -> int:
    settings = request.app.state.settings
    if limit is None:
        return settings.DEFAULT_PAGE_SIZE
    return max(1, min(limit, settings.MAX_PAGE_SIZE))


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


# --- submissions ------------------------------------------------------------


@router.post("/submissions", response_model=SubmissionOut, status_code=201)
async def create_submission(
    body: CreateSubmissionRequest, request: Request, actor: Actor = Depends(current_actor)
) -> SubmissionOut:
    service = request.app.state.moderation_service
    submission = await service.create_submission(body.kind.value, body.payload, actor.user_id)
    return _out(submission)


@router.get("/submissions", response_model=list[SubmissionOut])
async def list_submissions(
    request: Request,
    status: SubmissionStatus | None = None,
    requester_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    moderator: Moderator = Depends(require_moderator),
) -> list[SubmissionOut]:
    service = request.app.state.moderation_service
    submissions = await service.list_submissions(
        status=status, requester_id=requester_id, page=page, limit=_page_size(request, limit)
    )
    return [_out(s) for s in submissions]


@router.delete("/submissions", response_model=PurgeOut)
async def purge_decided_submissions(
    request: Request,
    decided: bool = Query(default=False),
    moderator: Moderator = Depends(require_moderator),
) -> PurgeOut:
    if not decided:
        # refuse an unqualified "delete everything"
        raise SubmissionValidationError("bulk delete requires decided=true")
    deleted = await request.app.state.moderation_service.purge_decided(moderator)
    return PurgeOut(deleted=deleted)


@router.get("/users/me/submissions", response_model=list[SubmissionOut])
async def my_submissions(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    actor: Actor = Depends(current_actor),
) -> list[SubmissionOut]:
    if actor.user_id is None:
        raise PermissionDenied("X-User-Id header required")
    service = request.app.state.moderation_service
    submissions = await service.list_submissions(
        requester_id=actor.user_id, page=page, limit=_page_size(request, limit)
    )
    return [_out(s) for s in submissions]


@router.get("/submissions/{submission_id}", response_model=SubmissionOut)
async def get_submission(
    submission_id: str, request: Request, actor: Actor = Depends(current_actor)
) -> SubmissionOut:
    submission = await request.app.state.moderation_service.get_submission(submission_id)
    is_owner = actor.user_id is not None and actor.user_id == submission.requester_id
    if actor.moderator is None and not is_owner:
        raise PermissionDenied("not your submission")
    return _out(submission)


@router.get("/submissions/{submission_id}/comparison", response_model=ComparisonOut)
async def get_comparison(
    submission_id: str, request: Request, moderator: Moderator = Depends(require_moderator)
) -> ComparisonOut:
    comparison = await request.app.state.moderation_service.get_comparison(submission_id)
    product = comparison.current_product
    return ComparisonOut(
        submission=_out(comparison.submission),
        current_product=ProductOut.from_product(product) if product else None,
    )


@router.post("/submissions/{submission_id}/resubmit", response_model=SubmissionOut, status_code=201)
async def resubmit(
    submission_id: str,
    body: ResubmitRequest,
    request: Request,
    actor: Actor = Depends(current_actor),
) -> SubmissionOut:
    service = request.app.state.moderation_service
    return _out(await service.resubmit(submission_id, body.payload, actor))


@router.post("/submissions/{submission_id}/approve", response_model=ApprovalOut)
async def approve(
    submission_id: str,
    request: Request,
    body: DecisionRequest | None = None,
    moderator: Moderator = Depends(require_moderator),
) -> ApprovalOut:
    service = request.app.state.moderation_service
    result = await service.approve(submission_id, moderator, body.note if body else None)
    return ApprovalOut.model_validate({**result.submission.to_dict(), "productId": result.product_id})


@router.post("/submissions/{submission_id}/reject", response_model=SubmissionOut)
async def reject(
    submission_id: str,
    request: Request,
    body: DecisionRequest | None = None,
    moderator: Moderator = Depends(require_moderator),
) -> SubmissionOut:
    service = request.app.state.moderation_service
    note = body.note if body and body.note is not None else ""
    return _out(await service.reject(submission_id, moderator, note))


@router.delete("/submissions/{submission_id}", status_code=204)
async def delete_submission(
    submission_id: str, request: Request, actor: Actor = Depends(current_actor)
) -> Response:
    await request.app.state.moderation_service.delete_submission(submission_id, actor)
    return Response(status_code=204)


# --- catalogue --------------------------------------------------------------


@router.get("/products", response_model=ProductPageOut)
async def list_products(
    request: Request,
    search: str | None = None,
    category: str | None = None,
    city: str | None = None,
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> ProductPageOut:
    result = await request.app.state.catalogue_service.list_products(
        search=search,
        category=category,
        city=city,
        min_price=min_price,
        max_price=max_price,
        page=page,
        limit=_page_size(request, limit),
    )
    return ProductPageOut.from_page(result)


@router.get("/products/{product_id}", response_model=ProductOut)
async def get_product(product_id: str, request: Request) -> ProductOut:
    product = await request.app.state.catalogue_service.get_product(product_id)
    return ProductOut.from_product(product)
