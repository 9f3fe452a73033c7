"""Workflow value objects and the declared lifecycles."""

import pytest

from booking_kernel.domain.lifecycles import (
    CONTRACT_DATE_WORKFLOW,
    CONTRACT_WORKFLOW,
    INVITATION_WORKFLOW,
    INVOICE_WORKFLOW,
    MONTHLY_CONTRACT_WORKFLOW,
)
from booking_kernel.domain.types import ContractStatus
from booking_kernel.domain.workflow import Transition, Workflow, require_transition
from booking_kernel.exceptions import InvalidTransitionError

ALL = [
    CONTRACT_WORKFLOW,
    CONTRACT_DATE_WORKFLOW,
    MONTHLY_CONTRACT_WORKFLOW,
    INVOICE_WORKFLOW,
    INVITATION_WORKFLOW,
]


class TestWorkflowValidation:
    def test_unknown_initial_state(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow("w", "d", initial_state="x", states=("a",), transitions=())

    def test_transition_to_unknown_state(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow("w", "d", "a", ("a",), (Transition("a", "b", "go"),))

    def test_terminal_state_with_outgoing_transition(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow("w", "d", "a", ("a", "b"), (Transition("b", "a", "go"),), terminal_states=("b",))

    @pytest.mark.parametrize("workflow", ALL, ids=lambda w: w.name)
    def test_declared_lifecycles_have_no_exits_from_terminal_states(self, workflow):
        for state in workflow.terminal_states:
            assert workflow.allowed_actions(state) == ()


class TestContractLifecycle:
    @pytest.mark.parametrize("state", ["pending", "sent"])
    def test_cancel_from_any_non_terminal(self, state):
        assert CONTRACT_WORKFLOW.find_transition(state, "cancel").to_state == "cancelled"

    def test_send_only_from_pending(self):
        assert CONTRACT_WORKFLOW.allowed_actions("sent") == ("sign", "reject", "cancel")
        assert CONTRACT_WORKFLOW.find_transition("sent", "send") is None

    def test_require_transition_accepts_enum_state(self):
        t = require_transition(CONTRACT_WORKFLOW, "ContractMusician", "id", ContractStatus.SENT, "sign")
        assert t.to_state == "signed"

    def test_require_transition_raises_with_plain_status(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            require_transition(CONTRACT_WORKFLOW, "ContractMusician", "id", ContractStatus.SIGNED, "reject")
        assert exc_info.value.current_status == "signed"
        assert "'signed'" in str(exc_info.value)


class TestContractDateLifecycle:
    def test_signed_date_only_leaves_by_cancel(self):
        assert CONTRACT_DATE_WORKFLOW.allowed_actions("signed") == ("cancel",)
        assert CONTRACT_DATE_WORKFLOW.find_transition("signed", "reject") is None

    def test_rejected_date_is_final(self):
        assert CONTRACT_DATE_WORKFLOW.is_terminal("rejected")
        assert CONTRACT_DATE_WORKFLOW.find_transition("rejected", "cancel") is None


class TestInvoiceLifecycle:
    def test_strictly_forward(self):
        assert INVOICE_WORKFLOW.find_transition("draft", "mark_paid") is None
        assert INVOICE_WORKFLOW.find_transition("finalized", "finalize") is None
        assert INVOICE_WORKFLOW.is_terminal("paid")
