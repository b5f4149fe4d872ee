"""Tests for the review workflow and its exit codes."""

import io

import pytest

from ontlock.kernel.diff import diff_snapshots
from ontlock.kernel.snapshot import compute_snapshot
from ontlock.lockfile import read_lock, write_lock
from ontlock.review import ConsoleReviewer, ReviewDecision, run_review

import sample_api


class StubReviewer:
    def __init__(self, approve: bool):
        self.approve = approve
        self.calls = 0

    def review(self, changeset, directory):
        self.calls += 1
        return ReviewDecision(approved=self.approve)


def _approve(directory, definition):
    snapshot, digest = compute_snapshot(definition)
    write_lock(directory, snapshot, digest)
    return digest


def test_print_only_exits_1_on_pending_changes(tmp_path, api):
    out = io.StringIO()
    assert run_review(api, tmp_path, print_only=True, out=out) == 1
    assert "No lockfile found" in out.getvalue()
    assert read_lock(tmp_path) is None


def test_print_only_exits_0_when_approved(tmp_path, api):
    _approve(tmp_path, api)
    out = io.StringIO()
    assert run_review(api, tmp_path, print_only=True, out=out) == 0
    assert "No API surface changes" in out.getvalue()


def test_auto_approve_writes_initial_lock(tmp_path, api):
    out = io.StringIO()
    assert run_review(api, tmp_path, auto_approve=True, out=out) == 0
    _, digest = compute_snapshot(api)
    assert read_lock(tmp_path).hash == digest
    assert "Changes approved" in out.getvalue()


def test_auto_approve_updates_stale_lock(tmp_path):
    _approve(tmp_path, sample_api.build_api())
    changed = sample_api.api_with_support_access()

    assert run_review(changed, tmp_path, auto_approve=True, out=io.StringIO()) == 0
    assert read_lock(tmp_path).snapshot.access_groups == ["admin", "public", "support"]


def test_auto_approve_without_changes_keeps_lock(tmp_path, api):
    _approve(tmp_path, api)
    approved_at = read_lock(tmp_path).approved_at
    assert run_review(api, tmp_path, auto_approve=True, out=io.StringIO()) == 0
    assert read_lock(tmp_path).approved_at == approved_at


def test_interactive_approval(tmp_path):
    _approve(tmp_path, sample_api.build_api())
    reviewer = StubReviewer(approve=True)
    changed = sample_api.api_with_support_group()

    assert run_review(changed, tmp_path, reviewer=reviewer, out=io.StringIO()) == 0
    assert reviewer.calls == 1
    assert "support" in read_lock(tmp_path).snapshot.access_groups


def test_interactive_rejection(tmp_path):
    stored = _approve(tmp_path, sample_api.build_api())
    reviewer = StubReviewer(approve=False)

    code = run_review(sample_api.api_with_support_group(), tmp_path, reviewer=reviewer, out=io.StringIO())

    assert code == 1
    assert read_lock(tmp_path).hash == stored


def test_interactive_without_changes_does_not_prompt(tmp_path, api):
    _approve(tmp_path, api)
    reviewer = StubReviewer(approve=False)
    assert run_review(api, tmp_path, reviewer=reviewer, out=io.StringIO()) == 0
    assert reviewer.calls == 0


def test_conflicting_modes_rejected(tmp_path, api):
    with pytest.raises(ValueError):
        run_review(api, tmp_path, print_only=True, auto_approve=True)


@pytest.mark.parametrize("answer, approved", [("y", True), ("YES", True), ("n", False), ("", False)])
def test_console_reviewer_answers(sample_snapshot, tmp_path, answer, approved):
    prompts = []

    def fake_input(prompt):
        prompts.append(prompt)
        return answer

    out = io.StringIO()
    reviewer = ConsoleReviewer(input_fn=fake_input, out=out)
    decision = reviewer.review(diff_snapshots(None, sample_snapshot), tmp_path)

    assert decision.approved is approved
    assert prompts == ["Approve these changes? [y/N] "]
    assert "getUser" in out.getvalue()


def test_console_reviewer_rejects_without_terminal(sample_snapshot, tmp_path):
    def closed_input(prompt):
        raise EOFError

    reviewer = ConsoleReviewer(input_fn=closed_input, out=io.StringIO())
    assert reviewer.review(diff_snapshots(None, sample_snapshot), tmp_path).approved is False
