import pytest

from civic_console.core.errors import Conflict, ValidationFailed
from civic_console.models.report import Evidence, Report, ReportStatus
from civic_console.models.user import UserRole
from civic_console.services.status_workflow import Actor, StatusWorkflowEngine as W


def make_report(status=ReportStatus.PENDING, **fields):
    return Report(id="r1", status=status, **fields)


class TestTransitions:

    @pytest.mark.parametrize("from_status,to_status,actor", [
        (ReportStatus.PENDING, ReportStatus.IN_PROGRESS, Actor.ADMIN),
        (ReportStatus.IN_PROGRESS, ReportStatus.RESOLVED, Actor.SUPERVISOR),
        (ReportStatus.IN_PROGRESS, ReportStatus.RESOLVED, Actor.ADMIN),
        (ReportStatus.IN_PROGRESS, ReportStatus.PENDING, Actor.SYSTEM),
    ])
    def test_allowed(self, from_status, to_status, actor):
        assert W.is_valid_transition(from_status, to_status, actor)

    @pytest.mark.parametrize("from_status,to_status,actor", [
        (ReportStatus.PENDING, ReportStatus.IN_PROGRESS, Actor.SUPERVISOR),
        (ReportStatus.PENDING, ReportStatus.RESOLVED, Actor.ADMIN),
        (ReportStatus.IN_PROGRESS, ReportStatus.PENDING, Actor.ADMIN),
        (ReportStatus.RESOLVED, ReportStatus.IN_PROGRESS, Actor.ADMIN),
        (ReportStatus.RESOLVED, ReportStatus.PENDING, Actor.SYSTEM),
        (ReportStatus.REJECTED, ReportStatus.PENDING, Actor.SYSTEM),
    ])
    def test_rejected(self, from_status, to_status, actor):
        assert not W.is_valid_transition(from_status, to_status, actor)

    def test_same_status_is_not_a_transition(self):
        for status in ReportStatus:
            assert not W.is_valid_transition(status, status)

    def test_accepts_wire_values_and_user_roles(self):
        assert W.is_valid_transition("Pending", "In Progress", UserRole.ADMIN)
        assert W.is_valid_transition("In Progress", "Resolved", "supervisor")
        assert not W.is_valid_transition("Pending", "Done")
        assert not W.is_valid_transition("Pending", "In Progress", "citizen")

    def test_allowed_transitions_by_actor(self):
        assert W.get_allowed_transitions(ReportStatus.IN_PROGRESS) == ["Resolved", "Pending"]
        assert W.get_allowed_transitions(ReportStatus.IN_PROGRESS, Actor.SUPERVISOR) == ["Resolved"]
        assert W.get_allowed_transitions(ReportStatus.RESOLVED) == []

    def test_ensure_transition_raises_conflict(self):
        with pytest.raises(Conflict) as exc:
            W.ensure_transition(make_report(ReportStatus.RESOLVED), ReportStatus.IN_PROGRESS, Actor.ADMIN)
        assert exc.value.detail == {"report_id": "r1", "status": "Resolved"}


class TestPreconditions:

    @pytest.mark.parametrize("estimate", [None, "", "   "])
    def test_start_work_needs_estimate(self, estimate):
        with pytest.raises(ValidationFailed):
            W.check_start_work(make_report(), estimate)

    def test_start_work_trims_estimate(self):
        assert W.check_start_work(make_report(), "  2 days ") == "2 days"

    def test_start_work_only_from_pending(self):
        with pytest.raises(Conflict):
            W.check_start_work(make_report(ReportStatus.IN_PROGRESS), "2 days")

    def test_assign_worker_needs_in_progress(self):
        with pytest.raises(Conflict):
            W.check_assign_worker(make_report(ReportStatus.PENDING), "Ravi")

    def test_reassigning_a_worker_is_a_conflict(self):
        report = make_report(ReportStatus.IN_PROGRESS, worker_name="Ravi")
        with pytest.raises(Conflict) as exc:
            W.check_assign_worker(report, "Meena")
        assert exc.value.detail["worker_name"] == "Ravi"

    def test_assign_worker_needs_a_name(self):
        with pytest.raises(ValidationFailed):
            W.check_assign_worker(make_report(ReportStatus.IN_PROGRESS), " ")


class TestEvidence:

    @pytest.mark.parametrize("evidence", [None, Evidence(), Evidence(photo_url="  ")])
    def test_photo_always_required(self, evidence):
        with pytest.raises(ValidationFailed):
            W.validate_evidence(evidence, ml_gated=False)

    def test_ungated_accepts_photo_alone(self):
        evidence = Evidence(photo_url="https://img/1.jpg")
        assert W.validate_evidence(evidence, ml_gated=False) is evidence

    def test_gated_needs_classifier_label(self):
        with pytest.raises(ValidationFailed, match="classifier"):
            W.validate_evidence(Evidence(photo_url="https://img/1.jpg"), ml_gated=True)

    def test_gated_rejects_unresolved_label(self):
        evidence = Evidence(photo_url="https://img/1.jpg", resolved_class="PotHole")
        with pytest.raises(ValidationFailed, match="PotHole"):
            W.validate_evidence(evidence, ml_gated=True)

    def test_gated_accepts_resolved_label(self):
        evidence = Evidence(photo_url="https://img/1.jpg", resolved_class="GarbageNotOverflow")
        assert W.validate_evidence(evidence, ml_gated=True) is evidence

    def test_resolution_without_evidence_fails_before_transition_check(self):
        # Validation comes first even when the report could never be resolved
        with pytest.raises(ValidationFailed):
            W.check_resolution(make_report(ReportStatus.PENDING), None, Actor.ADMIN, ml_gated=False)

    def test_resolution_changes(self):
        changes = W.resolution_changes(Evidence(photo_url="https://img/1.jpg", resolved_class="NoPotHole"))
        assert changes["resolved_photo"] == "https://img/1.jpg"
        assert changes["resolved_image_url"] == "https://img/1.jpg"
        assert changes["resolved_class"] == "NoPotHole"
        assert changes["requires_manual_review"] is False
        assert changes["resolved_at"].tzinfo is not None


class TestPhotoUpload:
    MAX = 10 * 1024 * 1024

    def test_accepts_image_within_limit(self):
        W.validate_photo_upload("image/png", 1024, self.MAX)

    @pytest.mark.parametrize("content_type,size", [
        ("application/pdf", 1024),
        (None, 1024),
        ("image/jpeg", 0),
        ("image/jpeg", 10 * 1024 * 1024 + 1),
    ])
    def test_rejects(self, content_type, size):
        with pytest.raises(ValidationFailed):
            W.validate_photo_upload(content_type, size, self.MAX)


def test_status_history_entry():
    entry = W.create_status_history_entry("r1", "Pending", "In Progress", "admin-1", UserRole.ADMIN, note="2 days")
    assert entry["report_id"] == "r1"
    assert entry["from_status"] == "Pending"
    assert entry["new_status"] == "In Progress"
    assert entry["actor_id"] == "admin-1"
    assert entry["actor_role"] == "ADMIN"
    assert entry["note"] == "2 days"
