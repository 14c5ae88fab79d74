import asyncio

import pytest

from portalflow.config import PortalflowConfig
from portalflow.contracts import ActionKind, ActionOutcome, FlowVariant, SubmissionStatus
from portalflow.errors import ExternalActionFailure
from portalflow.gateway.base import ActionGateway
from portalflow.wizard import WizardPhase, WizardStateMachine


def _gateway(**handlers) -> ActionGateway:
    gateway = ActionGateway()
    for kind, handler in handlers.items():
        gateway.register(kind, handler)
    return gateway


async def _ok(payload):
    return {"echo": payload.get("fields")}


async def _fail(payload):
    raise RuntimeError("Signature partner rejected the request")


def test_start_resets_state():
    wizard = WizardStateMachine(ActionGateway())
    wizard.set_field("name", "Grant A")
    wizard.go_next()
    first_session = wizard.state.session_id

    state = wizard.start(FlowVariant.NDA)
    assert state.current_step_index == 1
    assert state.fields == {}
    assert state.submission_status is SubmissionStatus.DRAFT
    assert state.session_id != first_session
    assert wizard.phase is WizardPhase.DRAFT


def test_nda_steps_and_jump_clamps():
    wizard = WizardStateMachine(ActionGateway(), variant="nda")
    assert [s.title for s in wizard.steps] == ["NDA Details", "Parties", "Sign & Send"]
    assert wizard.jump_to(5) == 3
    assert wizard.jump_to(0) == 1


def test_navigation_is_bounded_and_permissive():
    wizard = WizardStateMachine(ActionGateway())
    assert wizard.go_back() == 1
    for _ in range(20):
        wizard.go_next()
    assert wizard.state.current_step_index == len(wizard.steps)
    # skipped steps are reported but never block navigation
    gaps = wizard.validation_gaps()
    assert [g.step_id for g in gaps] == list(range(1, len(wizard.steps)))


def test_next_then_back_round_trip_keeps_fields():
    wizard = WizardStateMachine(ActionGateway())
    wizard.jump_to(3)
    wizard.set_field("project_milestones", ["kickoff"])
    before = dict(wizard.fields)
    wizard.go_next()
    wizard.go_back()
    assert wizard.state.current_step_index == 3
    assert wizard.fields == before


def test_set_field_last_write_wins_and_commutes():
    a = WizardStateMachine(ActionGateway())
    a.set_field("company_name", "Acme")
    a.set_field("company_name", "Acme Corp")
    assert a.fields["company_name"] == "Acme Corp"

    b = WizardStateMachine(ActionGateway())
    b.set_field("x", 1)
    b.set_field("y", 2)
    c = WizardStateMachine(ActionGateway())
    c.set_field("y", 2)
    c.set_field("x", 1)
    assert b.fields == c.fields


def test_strict_mode_blocks_incomplete_step():
    wizard = WizardStateMachine(ActionGateway(), strict=True)
    assert wizard.go_next() == 1
    wizard.update_fields({"name": "Grant A", "document_type": "grant"})
    assert wizard.go_next() == 2


def test_variant_switch_keeps_fields_and_clamps_index():
    wizard = WizardStateMachine(ActionGateway())
    wizard.set_field("name", "Shared")
    wizard.jump_to(7)
    wizard.set_variant(FlowVariant.NDA)
    assert wizard.state.current_step_index == 3
    assert wizard.fields["name"] == "Shared"
    assert wizard.is_step_complete(1) is False


@pytest.mark.asyncio
async def test_successful_submit_moves_status():
    wizard = WizardStateMachine(_gateway(submit=_ok))
    wizard.set_field("name", "Grant A")

    record = await wizard.run_external_action(ActionKind.SUBMIT)

    assert record.result is ActionOutcome.SUCCESS
    assert record.session_id == wizard.state.session_id
    assert record.value == {"echo": {"name": "Grant A"}}
    assert wizard.state.submission_status is SubmissionStatus.PENDING_SIGNATURE
    assert wizard.phase is WizardPhase.SUBMITTED
    assert wizard.history == [record]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kind, status",
    [
        (ActionKind.CREATE_PROJECT, SubmissionStatus.ACTIVE),
        (ActionKind.COUNTERSIGN, SubmissionStatus.COMPLETED),
        (ActionKind.SAVE_DRAFT, SubmissionStatus.DRAFT),
    ],
)
async def test_status_depends_on_action_kind(kind, status):
    wizard = WizardStateMachine(_gateway(**{kind.value: _ok}))
    await wizard.run_external_action(kind)
    assert wizard.state.submission_status is status


@pytest.mark.asyncio
async def test_failed_action_leaves_state_untouched():
    wizard = WizardStateMachine(_gateway(send_for_signature=_fail), variant="nda")
    wizard.update_fields({"name": "NDA - Acme", "signer_email": "a@acme.test"})
    wizard.jump_to(3)
    fields_before = dict(wizard.fields)

    record = await wizard.run_external_action("send_for_signature", {"recipient_email": "a@acme.test"})

    assert record.result is ActionOutcome.FAILURE
    assert wizard.state.submission_status is SubmissionStatus.DRAFT
    assert wizard.state.current_step_index == 3
    assert wizard.fields == fields_before
    assert wizard.state.last_error == "Signature partner rejected the request"
    assert wizard.phase is WizardPhase.FAILED
    with pytest.raises(ExternalActionFailure) as exc_info:
        record.raise_for_status()
    assert exc_info.value.message == "Signature partner rejected the request"
    assert "send_for_signature" in str(exc_info.value)

    wizard.go_back()
    assert wizard.state.last_error is None


@pytest.mark.asyncio
async def test_retry_creates_new_record():
    attempts = []

    async def flaky(payload):
        attempts.append(payload)
        if len(attempts) == 1:
            raise RuntimeError("timeout")
        return {"proposal_id": "proposal-1"}

    wizard = WizardStateMachine(_gateway(submit=flaky))
    first = await wizard.run_external_action(ActionKind.SUBMIT)
    second = await wizard.run_external_action(ActionKind.SUBMIT)

    assert first.action_id != second.action_id
    assert first.result is ActionOutcome.FAILURE
    assert second.result is ActionOutcome.SUCCESS
    assert wizard.proposal_id == "proposal-1"
    with pytest.raises(RuntimeError):
        first.resolve(second)


@pytest.mark.asyncio
async def test_derived_artifacts_are_stored():
    async def research(payload):
        return {"company_overview": "Precision parts"}

    wizard = WizardStateMachine(_gateway(deep_research=research), variant=FlowVariant.OEM_SUPPLIER_READINESS)
    await wizard.run_external_action(ActionKind.DEEP_RESEARCH)
    assert wizard.state.derived["deep_research_result"] == {"company_overview": "Precision parts"}
    assert wizard.is_step_complete(2)


@pytest.mark.asyncio
async def test_pending_phase_and_stale_result_discarded():
    release = asyncio.Event()

    async def slow_submit(payload):
        await release.wait()
        return {"proposal_id": "late"}

    wizard = WizardStateMachine(_gateway(submit=slow_submit))
    wizard.set_field("name", "Old session")
    task = asyncio.create_task(wizard.run_external_action(ActionKind.SUBMIT))
    await asyncio.sleep(0)
    assert wizard.phase is WizardPhase.PENDING_EXTERNAL_ACTION

    wizard.start(FlowVariant.STANDARD)
    release.set()
    record = await task

    assert record.stale is True
    assert record.result is ActionOutcome.SUCCESS
    assert wizard.state.submission_status is SubmissionStatus.DRAFT
    assert wizard.proposal_id is None
    assert wizard.phase is WizardPhase.DRAFT


@pytest.mark.asyncio
async def test_unregistered_action_fails_without_raising():
    wizard = WizardStateMachine(ActionGateway())
    record = await wizard.run_external_action(ActionKind.NOTIFY)
    assert record.result is ActionOutcome.FAILURE
    assert "No handler registered" in record.error_detail


def test_to_record_snapshots_session():
    wizard = WizardStateMachine(ActionGateway(), variant="oem_supplier_readiness")
    wizard.update_fields({"supplier_name": "Acme Machining", "target_oem": "Ford"})
    record = wizard.to_record()
    assert record.name == "Acme Machining"
    assert record.variant is FlowVariant.OEM_SUPPLIER_READINESS
    assert record.id == f"proposal-{wizard.state.session_id}"


def test_strict_mode_from_config():
    config = PortalflowConfig()
    config.wizard.strict = True
    wizard = WizardStateMachine.from_config(ActionGateway(), config, variant="nda")
    assert wizard.strict is True
    assert wizard.go_next() == 1


@pytest.mark.asyncio
async def test_new_session_saves_a_new_proposal(gateway, repository):
    wizard = WizardStateMachine(gateway)
    wizard.set_field("name", "First proposal")
    first = await wizard.run_external_action(ActionKind.SAVE_DRAFT)

    wizard.start(FlowVariant.STANDARD)
    assert wizard.proposal_id is None
    assert wizard.history == []

    wizard.set_field("name", "Second proposal")
    second = await wizard.run_external_action(ActionKind.SAVE_DRAFT)

    assert first.value["proposal_id"] != second.value["proposal_id"]
    assert wizard.history == [second]
    names = sorted(p.name for p in await repository.list_proposals())
    assert names == ["First proposal", "Second proposal"]


def test_constructor_proposal_id_applies_to_first_session_only():
    wizard = WizardStateMachine(ActionGateway(), proposal_id="proposal-existing")
    assert wizard.proposal_id == "proposal-existing"
    wizard.start()
    assert wizard.proposal_id is None
