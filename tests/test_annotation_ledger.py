import asyncio

import pytest

from models.annotation_models import AnnotationKey, AnnotationStatus, HistoryAction
from models.user_models import Role
from utils.errors import NotFound, ValidationError


@pytest.mark.asyncio
async def test_first_save_creates_with_role_snapshot(core, dataset):
    annotation = await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal sinus rhythm", "confirmed")

    assert annotation.status is AnnotationStatus.CONFIRMED
    assert annotation.annotator_role is Role.ANNOTATOR
    assert annotation.institution == "Tianjin Hospital"
    assert annotation.version == 1

    stored = await core.ledger.get_annotation("alice", dataset.id, "rec1")
    assert stored == annotation


@pytest.mark.asyncio
async def test_resave_overwrites_in_place_and_moves_timestamp(core, dataset):
    first = await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")
    second = await core.ledger.save_annotation("alice", dataset.id, "rec1", "Possible AF", "unsure")

    live = await core.ledger.get_all_annotations_for_record(dataset.id, "rec1")
    assert len(live) == 1
    assert live[0].content == "Possible AF"
    assert live[0].status is AnnotationStatus.UNSURE
    assert second.timestamp > first.timestamp
    assert second.created_at == first.created_at
    assert second.version == 2


@pytest.mark.asyncio
async def test_every_save_appends_history(core, dataset):
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Possible AF", "unsure")

    history = await core.ledger.history(AnnotationKey("alice", dataset.id, "rec1"))

    assert [h.action for h in history] == [HistoryAction.CREATED, HistoryAction.UPDATED]
    assert history[1].old_status is AnnotationStatus.CONFIRMED
    assert history[1].new_status is AnnotationStatus.UNSURE
    assert history[1].old_content == "Normal"
    assert history[1].new_content == "Possible AF"


@pytest.mark.asyncio
async def test_invalid_status_is_rejected(core, dataset):
    with pytest.raises(ValidationError):
        await core.ledger.save_annotation("alice", dataset.id, "rec1", "text", "maybe")
    with pytest.raises(ValidationError):
        await core.ledger.save_annotation("alice", dataset.id, "rec1", "text", "reviewed")
    assert await core.ledger.get_annotation("alice", dataset.id, "rec1") is None


@pytest.mark.asyncio
async def test_save_on_unknown_record_or_user(core, dataset):
    with pytest.raises(NotFound):
        await core.ledger.save_annotation("alice", dataset.id, "rec42", "text", "confirmed")
    with pytest.raises(NotFound):
        await core.ledger.save_annotation("alice", "nope", "rec1", "text", "confirmed")
    with pytest.raises(NotFound):
        await core.ledger.save_annotation("mallory", dataset.id, "rec1", "text", "confirmed")


@pytest.mark.asyncio
async def test_role_snapshot_survives_profile_change(core, dataset, monkeypatch):
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")

    promoted = await core.users.get_user("alice")
    promoted.role = Role.EXPERT
    promoted.institution = "Elsewhere"

    async def get_promoted(username):
        return promoted

    monkeypatch.setattr(core.dal, "get_user", get_promoted)

    updated = await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal variant", "confirmed")
    assert updated.annotator_role is Role.ANNOTATOR
    assert updated.institution == "Tianjin Hospital"


@pytest.mark.asyncio
async def test_review_marks_reviewed_and_logs(core, dataset):
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "unsure")
    key = AnnotationKey("alice", dataset.id, "rec1")

    reviewed = await core.ledger.review_annotation(key, "carol", "Agree")

    assert reviewed.status is AnnotationStatus.REVIEWED
    assert reviewed.reviewed_by == "carol"
    assert reviewed.review_notes == "Agree"
    assert reviewed.reviewed_at is not None
    history = await core.ledger.history(key)
    assert history[-1].action is HistoryAction.REVIEWED
    assert history[-1].acting_user == "carol"
    assert history[-1].old_status is AnnotationStatus.UNSURE


@pytest.mark.asyncio
async def test_review_of_missing_annotation(core, dataset):
    with pytest.raises(NotFound):
        await core.ledger.review_annotation(AnnotationKey("bob", dataset.id, "rec1"), "carol", None)


@pytest.mark.asyncio
async def test_resubmitting_reviewed_annotation_drops_review(core, dataset):
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")
    key = AnnotationKey("alice", dataset.id, "rec1")
    await core.ledger.review_annotation(key, "carol", "Agree")

    resubmitted = await core.ledger.save_annotation("alice", dataset.id, "rec1", "Changed my mind", "unsure")

    assert resubmitted.status is AnnotationStatus.UNSURE
    assert resubmitted.reviewed_by is None
    assert resubmitted.review_notes is None
    history = await core.ledger.history(key)
    assert history[-1].old_status is AnnotationStatus.REVIEWED


@pytest.mark.asyncio
async def test_concurrent_saves_on_different_keys_all_land(core, dataset):
    await asyncio.gather(
        core.ledger.save_annotation("alice", dataset.id, "rec1", "a1", "confirmed"),
        core.ledger.save_annotation("alice", dataset.id, "rec2", "a2", "unsure"),
        core.ledger.save_annotation("bob", dataset.id, "rec1", "b1", "confirmed"),
        core.ledger.save_annotation("bob", dataset.id, "rec3", "b3", "confirmed"),
    )

    assert len(await core.ledger.user_annotations("alice")) == 2
    assert len(await core.ledger.user_annotations("bob")) == 2
    assert len(await core.ledger.get_all_annotations_for_record(dataset.id, "rec1")) == 2


@pytest.mark.asyncio
async def test_user_annotations_and_recent_activity_newest_first(core, dataset):
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "a1", "confirmed")
    await core.ledger.save_annotation("bob", dataset.id, "rec2", "b2", "confirmed")
    await core.ledger.save_annotation("alice", dataset.id, "rec3", "a3", "unsure")

    mine = await core.ledger.user_annotations("alice")
    recent = await core.ledger.recent_activity(limit=2)

    assert [a.record_id for a in mine] == ["rec3", "rec1"]
    assert [(a.annotator, a.record_id) for a in recent] == [("alice", "rec3"), ("bob", "rec2")]


@pytest.mark.asyncio
async def test_reviewed_annotation_cannot_be_reviewed_again(core, dataset):
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")
    key = AnnotationKey("alice", dataset.id, "rec1")
    await core.ledger.review_annotation(key, "carol", "Agree")

    with pytest.raises(ValidationError):
        await core.ledger.review_annotation(key, "dave", "Disagree")

    stored = await core.ledger.get_annotation("alice", dataset.id, "rec1")
    assert stored.reviewed_by == "carol"
    assert stored.review_notes == "Agree"
    history = await core.ledger.history(key)
    assert [h.action for h in history] == [HistoryAction.CREATED, HistoryAction.REVIEWED]


@pytest.mark.asyncio
async def test_findings_and_confidence_are_stored_and_replaced(core, dataset):
    await core.ledger.save_annotation(
        "alice", dataset.id, "rec1", "Possible AF", "unsure", findings="Irregular RR intervals", confidence_score=0.6
    )

    stored = await core.ledger.get_annotation("alice", dataset.id, "rec1")
    assert stored.findings == "Irregular RR intervals"
    assert stored.confidence_score == pytest.approx(0.6)

    await core.ledger.save_annotation("alice", dataset.id, "rec1", "AF", "confirmed", confidence_score=1)
    updated = await core.ledger.get_annotation("alice", dataset.id, "rec1")
    assert updated.findings is None
    assert updated.confidence_score == 1.0


@pytest.mark.asyncio
@pytest.mark.parametrize("score", [-0.1, 1.5, "high", True])
async def test_confidence_outside_unit_range_is_rejected(core, dataset, score):
    with pytest.raises(ValidationError):
        await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed", confidence_score=score)
    assert await core.ledger.get_annotation("alice", dataset.id, "rec1") is None
