import pytest

from models.annotation_models import AnnotationStatus
from models.user_models import Role, can_review
from utils.errors import Forbidden, NotFound


def test_can_review_roles():
    assert can_review(Role.EXPERT)
    assert can_review("admin")
    assert not can_review(Role.ANNOTATOR)
    assert not can_review("visitor")


@pytest.mark.asyncio
async def test_annotator_is_forbidden_even_for_missing_record(core, dataset):
    with pytest.raises(Forbidden):
        await core.review.review_view(dataset.id, "rec1", Role.ANNOTATOR)
    with pytest.raises(Forbidden):
        await core.review.review_view("missing", "nothing", "annotator")


@pytest.mark.asyncio
async def test_review_view_lists_every_annotator(core, dataset):
    await core.ledger.save_annotation(
        "bob", dataset.id, "rec1", "Sinus tachycardia", "unsure", findings="HR 110", confidence_score=0.4
    )
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")
    await core.ledger.save_annotation("alice", dataset.id, "rec2", "Other record", "confirmed")

    views = await core.review.review_view(dataset.id, "rec1", Role.EXPERT)

    assert [v.annotator for v in views] == ["alice", "bob"]
    assert views[0].content == "Normal"
    assert views[0].status is AnnotationStatus.CONFIRMED
    assert views[1].institution == "Qingdao Hospital"
    assert views[1].annotator_role is Role.ANNOTATOR
    assert views[1].findings == "HR 110"
    assert views[1].confidence_score == pytest.approx(0.4)
    assert views[0].findings is None


@pytest.mark.asyncio
async def test_review_view_uses_annotation_snapshot(core, dataset, monkeypatch):
    await core.ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")

    async def no_users(username):
        return None

    # The projection must not consult the live user table.
    monkeypatch.setattr(core.dal, "get_user", no_users)
    views = await core.review.review_view(dataset.id, "rec1", Role.ADMIN)

    assert views[0].institution == "Tianjin Hospital"


@pytest.mark.asyncio
async def test_review_view_unknown_record_for_reviewer(core, dataset):
    with pytest.raises(NotFound):
        await core.review.review_view(dataset.id, "rec9", Role.EXPERT)
