"""
Item Lifecycle Tests — service-level coverage for:
  - Transition validation per item type (valid + invalid edges)
  - Role and ownership checks per action
  - PTW creation gate (Approved MOC only, one PTW per MOC)
  - Timestamps set by each transition
  - Generic update: contractor restrictions, status routed through the table
  - Delete protection for MOCs with an issued PTW
  - Role-scoped list queries
  - Full lifecycle walk: MOC draft → PTW job started
"""

import pytest

from permitflow.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from permitflow.models import db
from permitflow.models.item import (
    ITEM_TRANSITIONS,
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_JOB_STARTED,
    STATUS_REJECTED,
    STATUS_SUBMITTED,
    Item,
)
from permitflow.models.request import WorkRequest
from permitflow.services import item_lifecycle as lc


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════


def _item(owner, item_type="MOC", status=STATUS_DRAFT, **extra) -> Item:
    """Create an Item at an arbitrary status (bypasses the lifecycle)."""
    item = Item(type=item_type, status=status, created_by_id=owner.id,
                title=extra.pop("title", f"{item_type} item"), **extra)
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture()
def approved_moc(contractor):
    return _item(contractor, status=STATUS_APPROVED, title="Replace relief valve")


@pytest.fixture()
def ptw(hse, approved_moc):
    return _item(hse, "PTW", status=STATUS_DRAFT, moc_id=approved_moc.id)


# ═══════════════════════════════════════════════════════════════════════════
# TestValidateTransition: pure decision function
# ═══════════════════════════════════════════════════════════════════════════


class TestValidateTransition:

    @pytest.mark.parametrize("item_type", ["MOC", "PTW"])
    def test_every_edge_is_valid_from_its_source(self, contractor, item_type):
        for action, rule in ITEM_TRANSITIONS[item_type].items():
            for source in rule["from"]:
                item = Item(type=item_type, status=source, created_by_id=contractor.id)
                result = lc.validate_item_transition(item, action)
                assert result == {"valid": True, "from": source, "to": rule["to"], "reason": None}

    def test_approve_from_draft_is_invalid(self, contractor):
        item = Item(type="MOC", status=STATUS_DRAFT, created_by_id=contractor.id)
        result = lc.validate_item_transition(item, "approve")
        assert result["valid"] is False
        assert result["to"] == STATUS_APPROVED
        assert "Submitted" in result["reason"]

    def test_accept_is_not_defined_for_moc(self, contractor):
        item = Item(type="MOC", status=STATUS_APPROVED, created_by_id=contractor.id)
        result = lc.validate_item_transition(item, "accept")
        assert result["valid"] is False
        assert result["to"] is None

    def test_unknown_action(self, contractor):
        item = Item(type="PTW", status=STATUS_DRAFT, created_by_id=contractor.id)
        assert lc.validate_item_transition(item, "fly_to_moon")["valid"] is False

    def test_validation_does_not_mutate(self, contractor):
        item = _item(contractor)
        lc.validate_item_transition(item, "submit")
        assert item.status == STATUS_DRAFT
        assert item.submitted_at is None

    def test_available_transitions(self, contractor):
        assert _item(contractor).available_actions == ["submit"]
        assert _item(contractor, status=STATUS_SUBMITTED).available_actions == [
            "approve", "reject",
        ]
        assert _item(contractor, "PTW", status=STATUS_APPROVED).available_actions == [
            "accept",
        ]
        assert _item(contractor, status=STATUS_REJECTED).available_actions == []


class TestDerivedFlags:

    def test_draft_moc_is_editable(self, contractor):
        item = _item(contractor)
        assert item.is_editable and not item.is_reviewable and not item.can_issue_ptw

    def test_submitted_moc_is_reviewable(self, contractor):
        item = _item(contractor, status=STATUS_SUBMITTED)
        assert item.is_reviewable and not item.is_editable

    def test_approved_moc_can_issue_ptw(self, approved_moc):
        assert approved_moc.can_issue_ptw

    def test_ptw_flags_are_false(self, ptw):
        assert not ptw.is_editable and not ptw.can_issue_ptw

    def test_flags_are_serialized(self, approved_moc):
        d = approved_moc.to_dict()
        assert d["can_issue_ptw"] is True
        assert d["is_editable"] is False
        assert d["available_actions"] == []


# ═══════════════════════════════════════════════════════════════════════════
# TestCreateItem
# ═══════════════════════════════════════════════════════════════════════════


class TestCreateItem:

    def test_contractor_creates_moc_in_draft(self, contractor, actor):
        item = lc.create_item(actor(contractor), {
            "type": "MOC", "title": "Swap pump seal", "reason_for_change": "Leak",
            "pros": "Safer", "cons": "Downtime", "risk_factor": "Medium",
        })
        assert item.id is not None
        assert item.status == STATUS_DRAFT
        assert item.created_by_id == contractor.id
        assert item.reason_for_change == "Leak"
        assert item.moc_id is None

    def test_payload_status_is_ignored(self, contractor, actor):
        item = lc.create_item(actor(contractor), {"type": "MOC", "status": STATUS_APPROVED})
        assert item.status == STATUS_DRAFT

    def test_hse_cannot_create_moc(self, hse, actor):
        with pytest.raises(PermissionDenied):
            lc.create_item(actor(hse), {"type": "MOC", "title": "x"})
        assert Item.query.count() == 0

    def test_invalid_type(self, contractor, actor):
        with pytest.raises(ValidationError, match="Invalid item type"):
            lc.create_item(actor(contractor), {"type": "JSA"})

    def test_hse_creates_ptw_from_approved_moc(self, hse, actor, approved_moc):
        ptw = lc.create_item(actor(hse), {"type": "PTW", "title": "Hot work", "moc_id": approved_moc.id})
        assert ptw.status == STATUS_DRAFT
        assert ptw.moc_id == approved_moc.id
        assert ptw.created_by_id == hse.id

    def test_contractor_cannot_create_ptw(self, contractor, actor, approved_moc):
        with pytest.raises(PermissionDenied):
            lc.create_item(actor(contractor), {"type": "PTW", "moc_id": approved_moc.id})

    @pytest.mark.parametrize("status", [STATUS_DRAFT, STATUS_SUBMITTED, STATUS_REJECTED])
    def test_ptw_requires_approved_moc(self, contractor, hse, actor, status):
        moc = _item(contractor, status=status)
        with pytest.raises(ValidationError, match="approved MOC"):
            lc.create_item(actor(hse), {"type": "PTW", "moc_id": moc.id})
        assert Item.query.filter_by(type="PTW").count() == 0

    def test_ptw_with_missing_moc(self, hse, actor):
        with pytest.raises(ValidationError):
            lc.create_item(actor(hse), {"type": "PTW", "moc_id": 999})
        with pytest.raises(ValidationError):
            lc.create_item(actor(hse), {"type": "PTW"})

    def test_ptw_cannot_reference_a_ptw(self, hse, actor, contractor):
        approved_ptw = _item(contractor, "PTW", status=STATUS_APPROVED)
        with pytest.raises(ValidationError):
            lc.create_item(actor(hse), {"type": "PTW", "moc_id": approved_ptw.id})

    def test_second_ptw_for_same_moc_conflicts(self, hse, actor, approved_moc, ptw):
        with pytest.raises(ConflictError):
            lc.create_item(actor(hse), {"type": "PTW", "moc_id": approved_moc.id})

    def test_unknown_assignee(self, contractor, actor):
        with pytest.raises(NotFoundError):
            lc.create_item(actor(contractor), {"type": "MOC", "assigned_to_id": 4242})


# ═══════════════════════════════════════════════════════════════════════════
# TestTransitions: submit / approve / reject / accept
# ═══════════════════════════════════════════════════════════════════════════


class TestTransitions:

    def test_submit_sets_timestamp(self, contractor, actor):
        moc = _item(contractor)
        result = lc.submit_item(moc.id, actor(contractor))
        assert result.status == STATUS_SUBMITTED
        assert result.submitted_at is not None

    def test_submit_twice_fails(self, contractor, actor):
        moc = _item(contractor)
        lc.submit_item(moc.id, actor(contractor))
        with pytest.raises(TransitionError):
            lc.submit_item(moc.id, actor(contractor))

    def test_contractor_cannot_submit_someone_elses_moc(self, contractor, other_contractor, actor):
        moc = _item(contractor)
        with pytest.raises(PermissionDenied):
            lc.submit_item(moc.id, actor(other_contractor))
        assert db.session.get(Item, moc.id).status == STATUS_DRAFT

    def test_hse_submits_ptw_but_not_moc(self, contractor, hse, actor, ptw):
        assert lc.submit_item(ptw.id, actor(hse)).status == STATUS_SUBMITTED
        with pytest.raises(PermissionDenied):
            lc.submit_item(_item(contractor).id, actor(hse))

    @pytest.mark.parametrize("action,expected", [
        ("approve", STATUS_APPROVED),
        ("reject", STATUS_REJECTED),
    ])
    def test_review_from_submitted(self, contractor, hse, actor, action, expected):
        moc = _item(contractor, status=STATUS_SUBMITTED)
        result = lc.transition_item(moc.id, action, actor(hse))
        assert result.status == expected
        assert result.reviewed_at is not None
        assert result.accepted_at is None

    @pytest.mark.parametrize("action", ["approve", "reject"])
    @pytest.mark.parametrize("status", [STATUS_DRAFT, STATUS_APPROVED, STATUS_REJECTED])
    def test_review_from_other_status_fails_without_change(self, contractor, hse, actor, action, status):
        moc = _item(contractor, status=status)
        with pytest.raises(TransitionError):
            lc.transition_item(moc.id, action, actor(hse))
        fresh = db.session.get(Item, moc.id)
        assert fresh.status == status
        assert fresh.reviewed_at is None

    @pytest.mark.parametrize("role_fixture", ["contractor", "admin"])
    def test_only_hse_reviews(self, request, contractor, actor, role_fixture):
        user = request.getfixturevalue(role_fixture)
        moc = _item(contractor, status=STATUS_SUBMITTED)
        with pytest.raises(PermissionDenied):
            lc.approve_item(moc.id, actor(user))
        with pytest.raises(PermissionDenied):
            lc.reject_item(moc.id, actor(user))
        assert db.session.get(Item, moc.id).status == STATUS_SUBMITTED

    def test_forbidden_takes_precedence_over_status(self, contractor, actor):
        moc = _item(contractor, status=STATUS_DRAFT)
        with pytest.raises(PermissionDenied):
            lc.approve_item(moc.id, actor(contractor))

    def test_missing_item(self, hse, actor):
        with pytest.raises(NotFoundError):
            lc.approve_item(12345, actor(hse))

    def test_accept_ptw_starts_job(self, contractor, hse, actor, approved_moc):
        ptw = _item(hse, "PTW", status=STATUS_APPROVED, moc_id=approved_moc.id)
        result = lc.accept_ptw(ptw.id, actor(contractor))
        assert result.status == STATUS_JOB_STARTED
        assert result.accepted_at is not None

    def test_accept_twice_fails(self, contractor, hse, actor, approved_moc):
        ptw = _item(hse, "PTW", status=STATUS_APPROVED, moc_id=approved_moc.id)
        lc.accept_ptw(ptw.id, actor(contractor))
        with pytest.raises(TransitionError):
            lc.accept_ptw(ptw.id, actor(contractor))

    def test_accept_requires_approved(self, contractor, actor, ptw):
        with pytest.raises(TransitionError):
            lc.accept_ptw(ptw.id, actor(contractor))
        assert db.session.get(Item, ptw.id).accepted_at is None

    def test_only_contractor_accepts(self, hse, actor, approved_moc):
        ptw = _item(hse, "PTW", status=STATUS_APPROVED, moc_id=approved_moc.id)
        with pytest.raises(PermissionDenied):
            lc.accept_ptw(ptw.id, actor(hse))

    def test_contractor_accepts_only_ptw_for_own_moc(self, hse, other_contractor, actor, approved_moc):
        ptw = _item(hse, "PTW", status=STATUS_APPROVED, moc_id=approved_moc.id)
        with pytest.raises(PermissionDenied):
            lc.accept_ptw(ptw.id, actor(other_contractor))
        assert db.session.get(Item, ptw.id).status == STATUS_APPROVED

    def test_assigned_contractor_may_accept(self, hse, other_contractor, actor, approved_moc):
        ptw = _item(hse, "PTW", status=STATUS_APPROVED, moc_id=approved_moc.id,
                    assigned_to_id=other_contractor.id)
        assert lc.accept_ptw(ptw.id, actor(other_contractor)).status == STATUS_JOB_STARTED

    def test_accepting_a_moc_fails(self, contractor, actor, approved_moc):
        with pytest.raises(TransitionError):
            lc.accept_ptw(approved_moc.id, actor(contractor))


# ═══════════════════════════════════════════════════════════════════════════
# TestUpdateItem: generic update
# ═══════════════════════════════════════════════════════════════════════════


class TestUpdateItem:

    def test_contractor_submits_via_status_patch(self, contractor, actor):
        moc = _item(contractor)
        result = lc.update_item(moc.id, actor(contractor), {"status": STATUS_SUBMITTED})
        assert result.status == STATUS_SUBMITTED
        assert result.submitted_at is not None

    @pytest.mark.parametrize("patch", [
        {"title": "New title"},
        {"status": STATUS_APPROVED},
        {},
    ])
    def test_contractor_other_patches_forbidden(self, contractor, actor, patch):
        moc = _item(contractor)
        with pytest.raises(PermissionDenied):
            lc.update_item(moc.id, actor(contractor), patch)
        assert db.session.get(Item, moc.id).status == STATUS_DRAFT

    def test_contractor_cannot_resubmit(self, contractor, actor):
        moc = _item(contractor, status=STATUS_SUBMITTED)
        with pytest.raises(PermissionDenied):
            lc.update_item(moc.id, actor(contractor), {"status": STATUS_SUBMITTED})

    def test_hse_edits_fields(self, contractor, hse, actor):
        moc = _item(contractor)
        result = lc.update_item(moc.id, actor(hse), {
            "title": "Renamed", "description": "", "assigned_to_id": hse.id,
        })
        assert result.title == "Renamed"
        assert result.description == ""
        assert result.assigned_to_id == hse.id
        assert result.status == STATUS_DRAFT

    def test_empty_title_is_ignored(self, contractor, hse, actor):
        moc = _item(contractor, title="Keep me")
        assert lc.update_item(moc.id, actor(hse), {"title": ""}).title == "Keep me"

    def test_hse_status_patch_runs_transition(self, contractor, hse, actor):
        moc = _item(contractor, status=STATUS_SUBMITTED)
        result = lc.update_item(moc.id, actor(hse), {"status": STATUS_APPROVED})
        assert result.status == STATUS_APPROVED
        assert result.reviewed_at is not None

    def test_hse_cannot_skip_states(self, contractor, hse, actor):
        moc = _item(contractor, status=STATUS_DRAFT)
        with pytest.raises(TransitionError):
            lc.update_item(moc.id, actor(hse), {"status": STATUS_APPROVED, "title": "Sneaky"})
        fresh = db.session.get(Item, moc.id)
        assert fresh.status == STATUS_DRAFT
        assert fresh.title != "Sneaky"

    def test_hse_cannot_move_backwards(self, contractor, hse, actor):
        moc = _item(contractor, status=STATUS_APPROVED)
        with pytest.raises(TransitionError):
            lc.update_item(moc.id, actor(hse), {"status": STATUS_DRAFT})

    def test_invalid_status_value(self, contractor, hse, actor):
        moc = _item(contractor)
        with pytest.raises(ValidationError):
            lc.update_item(moc.id, actor(hse), {"status": "Closed"})

    def test_admin_cannot_approve_through_patch(self, contractor, admin, actor):
        moc = _item(contractor, status=STATUS_SUBMITTED)
        with pytest.raises(PermissionDenied):
            lc.update_item(moc.id, actor(admin), {"status": STATUS_APPROVED})

    def test_type_is_immutable(self, contractor, hse, actor):
        moc = _item(contractor)
        with pytest.raises(ValidationError):
            lc.update_item(moc.id, actor(hse), {"type": "PTW"})
        assert db.session.get(Item, moc.id).type == "MOC"
        # Same type in the patch is harmless
        assert lc.update_item(moc.id, actor(hse), {"type": "MOC"}).type == "MOC"


# ═══════════════════════════════════════════════════════════════════════════
# TestDeleteItem
# ═══════════════════════════════════════════════════════════════════════════


class TestDeleteItem:

    def test_hse_deletes(self, contractor, hse, actor):
        moc = _item(contractor)
        lc.delete_item(moc.id, actor(hse))
        assert db.session.get(Item, moc.id) is None

    def test_contractor_cannot_delete(self, contractor, actor):
        moc = _item(contractor)
        with pytest.raises(PermissionDenied):
            lc.delete_item(moc.id, actor(contractor))

    def test_moc_with_ptw_is_protected(self, hse, actor, approved_moc, ptw):
        with pytest.raises(ConflictError):
            lc.delete_item(approved_moc.id, actor(hse))
        lc.delete_item(ptw.id, actor(hse))
        lc.delete_item(approved_moc.id, actor(hse))
        assert Item.query.count() == 0

    def test_requests_survive_item_delete(self, contractor, hse, actor):
        moc = _item(contractor)
        req = WorkRequest(contractor_id=contractor.id, item_id=moc.id, requested_by_id=hse.id)
        db.session.add(req)
        db.session.commit()
        lc.delete_item(moc.id, actor(hse))
        db.session.expire_all()
        kept = db.session.get(WorkRequest, req.id)
        assert kept is not None
        assert kept.item_id is None

    def test_missing_item(self, hse, actor):
        with pytest.raises(NotFoundError):
            lc.delete_item(777, actor(hse))


# ═══════════════════════════════════════════════════════════════════════════
# TestQueries
# ═══════════════════════════════════════════════════════════════════════════


class TestQueries:

    def test_contractor_sees_only_own_items(self, contractor, other_contractor, hse, actor):
        mine = _item(contractor, title="Mine")
        _item(other_contractor, title="Theirs")
        _item(hse, "PTW", title="Permit")
        result = lc.list_items(actor(contractor))
        assert [i.id for i in result] == [mine.id]
        assert all(i.created_by_id == contractor.id for i in result)

    def test_hse_sees_everything_newest_first(self, contractor, other_contractor, hse, actor):
        first = _item(contractor)
        second = _item(other_contractor)
        result = lc.list_items(actor(hse))
        assert [i.id for i in result] == [second.id, first.id]

    def test_filters(self, contractor, hse, actor):
        _item(contractor, title="Boiler feed pump")
        target = _item(contractor, status=STATUS_SUBMITTED, title="Compressor PUMP upgrade")
        _item(hse, "PTW", title="Pump permit")
        result = lc.list_items(actor(hse), item_type="MOC", status=STATUS_SUBMITTED, search="pump")
        assert [i.id for i in result] == [target.id]
        assert len(lc.list_items(actor(hse), search="PUMP")) == 3

    def test_search_treats_wildcards_literally(self, contractor, hse, actor):
        _item(contractor, title="100% done")
        _item(contractor, title="100 done")
        assert len(lc.list_items(actor(hse), search="100%")) == 1

    def test_invalid_filter(self, hse, actor):
        with pytest.raises(ValidationError):
            lc.list_items(actor(hse), item_type="JSA")

    def test_list_mocs_scoping(self, contractor, other_contractor, hse, actor):
        mine = _item(contractor)
        theirs = _item(other_contractor)
        _item(hse, "MOC", title="HSE-raised MOC")
        _item(hse, "PTW")
        assert [i.id for i in lc.list_mocs(actor(contractor))] == [mine.id]
        assert {i.id for i in lc.list_mocs(actor(hse))} == {mine.id, theirs.id}

    def test_contractor_mocs_view(self, contractor, hse, actor):
        mine = _item(contractor)
        assert [i.id for i in lc.list_contractor_mocs(actor(contractor))] == [mine.id]
        with pytest.raises(PermissionDenied):
            lc.list_contractor_mocs(actor(hse))

    def test_job_started(self, contractor, other_contractor, hse, actor, approved_moc):
        started = _item(hse, "PTW", status=STATUS_JOB_STARTED, moc_id=approved_moc.id)
        other_moc = _item(other_contractor, status=STATUS_APPROVED)
        other_started = _item(hse, "PTW", status=STATUS_JOB_STARTED, moc_id=other_moc.id)
        _item(hse, "PTW", status=STATUS_APPROVED)

        assert [i.id for i in lc.list_job_started(actor(contractor))] == [started.id]
        assert {i.id for i in lc.list_job_started(actor(hse))} == {started.id, other_started.id}

    def test_ptw_by_moc(self, contractor, hse, actor, approved_moc, ptw):
        result = lc.get_ptw_by_moc(approved_moc.id, actor(contractor))
        assert result["id"] == ptw.id
        assert result["moc_owner"]["username"] == contractor.username
        assert result["issued_by"]["username"] == hse.username
        assert result["issued_by"]["role"] == "HSE"

    def test_ptw_by_moc_not_found(self, hse, actor, approved_moc):
        with pytest.raises(NotFoundError, match="PTW not found"):
            lc.get_ptw_by_moc(approved_moc.id, actor(hse))


# ═══════════════════════════════════════════════════════════════════════════
# TestFullLifecycle
# ═══════════════════════════════════════════════════════════════════════════


class TestFullLifecycle:

    def test_moc_to_job_started(self, contractor, hse, actor):
        c, h = actor(contractor), actor(hse)

        moc = lc.create_item(c, {"type": "MOC", "title": "Bypass line"})
        with pytest.raises(TransitionError):
            lc.approve_item(moc.id, h)

        moc = lc.submit_item(moc.id, c)
        assert moc.status == STATUS_SUBMITTED and moc.submitted_at is not None

        with pytest.raises(ValidationError):
            lc.create_item(h, {"type": "PTW", "moc_id": moc.id})

        moc = lc.approve_item(moc.id, h)
        assert moc.status == STATUS_APPROVED and moc.reviewed_at is not None
        assert moc.type == "MOC"

        ptw = lc.create_item(h, {"type": "PTW", "title": "Bypass permit", "moc_id": moc.id})
        assert ptw.status == STATUS_DRAFT

        with pytest.raises(TransitionError):
            lc.accept_ptw(ptw.id, c)

        lc.submit_item(ptw.id, h)
        ptw = lc.approve_item(ptw.id, h)
        assert ptw.status == STATUS_APPROVED

        ptw = lc.accept_ptw(ptw.id, c)
        assert ptw.status == STATUS_JOB_STARTED
        assert ptw.accepted_at is not None
        assert ptw.type == "PTW"

    def test_reject_path(self, contractor, hse, actor):
        c, h = actor(contractor), actor(hse)
        moc = lc.create_item(c, {"type": "MOC"})
        lc.submit_item(moc.id, c)
        moc = lc.reject_item(moc.id, h)
        assert moc.status == STATUS_REJECTED
        assert moc.submitted_at is not None and moc.reviewed_at is not None
        assert moc.accepted_at is None
        assert moc.available_actions == []
