import sqlite3

import pytest

from toolrent.errors import (
    PermissionDenied,
    PreconditionError,
    SubmissionNotFound,
    SubmissionValidationError,
    TargetProductNotFound,
)
from toolrent.models.effects import CreateProduct, RemoveProduct, UpdateProduct
from toolrent.models.product import STATUS_HIDDEN
from toolrent.models.submission import Actor, SubmissionKind, SubmissionStatus
from toolrent.services.moderation_service import ModerationService, plan_effect


def _count_products(db_path: str) -> int:
    conn = sqlite3.connect(db_path)
    row = conn.execute("SELECT COUNT(*) FROM products").fetchone()
    conn.close()
    return row[0]


# creation


@pytest.mark.asyncio
async def test_create_submission_is_pending_and_touches_no_product(service, db_path, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    assert submission.status is SubmissionStatus.PENDING
    assert submission.kind is SubmissionKind.ADD
    assert submission.decided_at is None
    assert _count_products(db_path) == 0

    stored = await service.get_submission(submission.id)
    assert stored.requester_id == "user-1"
    assert stored.payload.tool_name == "مثقاب"


@pytest.mark.asyncio
async def test_create_rejects_unknown_kind(service, drill_payload):
    with pytest.raises(SubmissionValidationError):
        await service.create_submission("archive", drill_payload, "user-1")


@pytest.mark.asyncio
async def test_create_modify_requires_existing_target(service):
    with pytest.raises(SubmissionValidationError, match="does not exist"):
        await service.create_submission("modify", {"targetProductId": "nope", "city": "فاس"}, "u")


@pytest.mark.asyncio
async def test_create_without_requester_is_allowed(service, drill_payload):
    submission = await service.create_submission("add", drill_payload, None)
    assert submission.requester_id is None


# approve


@pytest.mark.asyncio
async def test_approve_add_creates_one_product(service, products, moderator, db_path):
    submission = await service.create_submission(
        "add", {"toolName": "مثقاب", "category": "أدوات", "dailyPrice": "50"}, "user-1"
    )
    result = await service.approve(submission.id, moderator, "ok")

    assert result.submission.status is SubmissionStatus.APPROVED
    assert result.submission.decided_by == "admin"
    assert result.submission.decided_at is not None
    assert result.submission.moderation_note == "ok"
    assert _count_products(db_path) == 1

    product = products.get(result.product_id)
    assert product.name == "مثقاب"
    assert product.daily_price == 50
    assert product.rating == 0
    assert product.reviews_count == 0
    assert product.status == "available"
    assert product.owner_user_id == "user-1"
    assert product.id != submission.id


@pytest.mark.asyncio
async def test_approve_modify_is_a_partial_update(service, products, moderator, existing_product):
    submission = await service.create_submission(
        "modify", {"targetProductId": existing_product.id, "dailyPrice": "150"}, "user-1"
    )
    await service.approve(submission.id, moderator)

    product = products.get(existing_product.id)
    assert product.name == "X"
    assert product.daily_price == 150
    assert product.city == "سلا"
    assert product.brand == "Makita"


@pytest.mark.asyncio
async def test_approve_delete_hides_product_from_listing(service, products, moderator, existing_product):
    assert [p.id for p in products.list_visible().products] == [existing_product.id]
    submission = await service.create_submission(
        "delete", {"targetProductId": existing_product.id, "reason": "بعته"}, "user-1"
    )
    await service.approve(submission.id, moderator)

    assert products.list_visible().products == []
    assert products.get(existing_product.id).status == STATUS_HIDDEN


@pytest.mark.asyncio
async def test_approve_delete_with_hard_delete_policy(submissions, products, moderator, existing_product):
    service = ModerationService(submissions, products, delete_policy="delete")
    submission = await service.create_submission(
        "delete", {"targetProductId": existing_product.id}, "user-1"
    )
    await service.approve(submission.id, moderator)
    assert products.get(existing_product.id) is None


@pytest.mark.asyncio
async def test_approve_modify_with_missing_target_stays_pending(
    service, products, moderator, existing_product, db_path
):
    submission = await service.create_submission(
        "modify", {"targetProductId": existing_product.id, "dailyPrice": "150"}, "user-1"
    )
    conn = sqlite3.connect(db_path)
    conn.execute("DELETE FROM products WHERE id = ?", (existing_product.id,))
    conn.commit()
    conn.close()

    with pytest.raises(TargetProductNotFound):
        await service.approve(submission.id, moderator)

    stored = await service.get_submission(submission.id)
    assert stored.status is SubmissionStatus.PENDING
    assert stored.decided_at is None


@pytest.mark.asyncio
async def test_approve_twice_raises_precondition(service, moderator, db_path, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    await service.approve(submission.id, moderator)

    with pytest.raises(PreconditionError):
        await service.approve(submission.id, moderator)
    with pytest.raises(PreconditionError):
        await service.reject(submission.id, moderator, "late")

    assert _count_products(db_path) == 1
    stored = await service.get_submission(submission.id)
    assert stored.status is SubmissionStatus.APPROVED
    assert stored.moderation_note is None


@pytest.mark.asyncio
async def test_approve_unknown_submission(service, moderator):
    with pytest.raises(SubmissionNotFound):
        await service.approve("missing", moderator)


# reject


@pytest.mark.asyncio
async def test_reject_has_no_catalogue_effect(service, products, moderator, existing_product, db_path):
    submission = await service.create_submission(
        "delete", {"targetProductId": existing_product.id}, "user-1"
    )
    rejected = await service.reject(submission.id, moderator, "المنتج ما زال مطلوباً")

    assert rejected.status is SubmissionStatus.REJECTED
    assert rejected.moderation_note == "المنتج ما زال مطلوباً"
    assert rejected.decided_by == "admin"
    assert _count_products(db_path) == 1
    assert products.get(existing_product.id).status == "available"


@pytest.mark.asyncio
async def test_reject_with_empty_note(service, moderator, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    rejected = await service.reject(submission.id, moderator)
    assert rejected.status is SubmissionStatus.REJECTED
    assert rejected.moderation_note == ""
    assert rejected.decided_at is not None


# deletion


@pytest.mark.asyncio
async def test_owner_can_delete_decided_submission(service, moderator, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    await service.reject(submission.id, moderator)
    await service.delete_submission(submission.id, Actor(user_id="user-1"))
    with pytest.raises(SubmissionNotFound):
        await service.get_submission(submission.id)


@pytest.mark.asyncio
async def test_moderator_can_delete_any_submission(service, moderator, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    await service.delete_submission(submission.id, Actor(moderator=moderator))
    assert await service.list_submissions() == []


@pytest.mark.asyncio
async def test_stranger_cannot_delete(service, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    with pytest.raises(PermissionDenied):
        await service.delete_submission(submission.id, Actor(user_id="user-2"))
    with pytest.raises(PermissionDenied):
        await service.delete_submission(submission.id, Actor())


@pytest.mark.asyncio
async def test_anonymous_submission_only_deletable_by_moderator(service, moderator, drill_payload):
    submission = await service.create_submission("add", drill_payload, None)
    with pytest.raises(PermissionDenied):
        await service.delete_submission(submission.id, Actor())
    await service.delete_submission(submission.id, Actor(moderator=moderator))


@pytest.mark.asyncio
async def test_deleting_approved_submission_keeps_product(service, moderator, db_path, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    await service.approve(submission.id, moderator)
    await service.delete_submission(submission.id, Actor(user_id="user-1"))
    assert _count_products(db_path) == 1


@pytest.mark.asyncio
async def test_purge_decided_keeps_pending(service, moderator, drill_payload):
    keep = await service.create_submission("add", drill_payload, "user-1")
    approved = await service.create_submission("add", drill_payload, "user-1")
    rejected = await service.create_submission("add", drill_payload, "user-1")
    await service.approve(approved.id, moderator)
    await service.reject(rejected.id, moderator)

    assert await service.purge_decided(moderator) == 2
    assert [s.id for s in await service.list_submissions()] == [keep.id]


# resubmit


@pytest.mark.asyncio
async def test_resubmit_creates_new_pending_copy(service, moderator, drill_payload):
    original = await service.create_submission("add", drill_payload, "user-1")
    await service.reject(original.id, moderator, "الصورة غير واضحة")

    drill_payload["images"] = ["https://img.example/drill-2.jpg"]
    fresh = await service.resubmit(original.id, drill_payload, Actor(user_id="user-1"))

    assert fresh.id != original.id
    assert fresh.status is SubmissionStatus.PENDING
    assert fresh.payload.images == ["https://img.example/drill-2.jpg"]
    old = await service.get_submission(original.id)
    assert old.status is SubmissionStatus.REJECTED
    assert old.moderation_note == "الصورة غير واضحة"


@pytest.mark.asyncio
async def test_resubmit_keeps_kind_and_target(service, moderator, existing_product):
    original = await service.create_submission(
        "modify", {"targetProductId": existing_product.id, "dailyPrice": "150"}, "user-1"
    )
    await service.reject(original.id, moderator)
    fresh = await service.resubmit(
        original.id, {"targetProductId": "other", "dailyPrice": "120"}, Actor(user_id="user-1")
    )
    assert fresh.kind is SubmissionKind.MODIFY
    assert fresh.target_product_id == existing_product.id


@pytest.mark.asyncio
async def test_resubmit_requires_rejected_and_owner(service, moderator, drill_payload):
    original = await service.create_submission("add", drill_payload, "user-1")
    with pytest.raises(PreconditionError):
        await service.resubmit(original.id, drill_payload, Actor(user_id="user-1"))
    await service.reject(original.id, moderator)
    with pytest.raises(PermissionDenied):
        await service.resubmit(original.id, drill_payload, Actor(user_id="user-2"))


# listing and comparison


@pytest.mark.asyncio
async def test_pending_queue_is_oldest_first(service, moderator, drill_payload):
    first = await service.create_submission("add", drill_payload, "user-1")
    second = await service.create_submission("add", drill_payload, "user-2")
    third = await service.create_submission("add", drill_payload, "user-1")
    await service.reject(second.id, moderator)

    pending = await service.list_submissions(status=SubmissionStatus.PENDING)
    assert [s.id for s in pending] == [first.id, third.id]

    mine = await service.list_submissions(requester_id="user-1")
    assert [s.id for s in mine] == [third.id, first.id]


@pytest.mark.asyncio
async def test_list_pagination(service, drill_payload):
    created = [await service.create_submission("add", drill_payload, "u") for _ in range(5)]
    page_two = await service.list_submissions(status=SubmissionStatus.PENDING, page=2, limit=2)
    assert [s.id for s in page_two] == [created[2].id, created[3].id]


@pytest.mark.asyncio
async def test_comparison_returns_current_product(service, existing_product):
    submission = await service.create_submission(
        "modify", {"targetProductId": existing_product.id, "dailyPrice": "150"}, "user-1"
    )
    comparison = await service.get_comparison(submission.id)
    assert comparison.current_product.daily_price == 100
    assert comparison.submission.payload.product_fields() == {"daily_price": 150.0}


@pytest.mark.asyncio
async def test_comparison_for_add_has_no_product(service, drill_payload):
    submission = await service.create_submission("add", drill_payload, "user-1")
    assert (await service.get_comparison(submission.id)).current_product is None


# effect planning


@pytest.mark.asyncio
async def test_plan_effect_covers_every_kind(service, existing_product, drill_payload):
    add = await service.create_submission("add", drill_payload, "user-1")
    modify = await service.create_submission(
        "modify", {"targetProductId": existing_product.id, "city": "فاس"}, "user-1"
    )
    delete = await service.create_submission(
        "delete", {"targetProductId": existing_product.id}, "user-1"
    )

    add_effect = plan_effect(add)
    assert isinstance(add_effect, CreateProduct)
    assert add_effect.fields["owner_user_id"] == "user-1"
    assert plan_effect(modify) == UpdateProduct(existing_product.id, {"city": "فاس"})
    assert plan_effect(delete) == RemoveProduct(existing_product.id, hard_delete=False)
    assert plan_effect(delete, "delete") == RemoveProduct(existing_product.id, hard_delete=True)


def test_unknown_delete_policy_is_rejected(submissions, products):
    with pytest.raises(ValueError):
        ModerationService(submissions, products, delete_policy="archive")
