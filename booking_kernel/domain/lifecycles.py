"""Lifecycle state machines for contracts, contract dates, invoices and invitations."""

from booking_kernel.domain.workflow import Guard, Transition, Workflow

TOKEN_BOUND = Guard(
    name="token_bound",
    description="Caller presented the token bound to this contract slice",
)

CONTRACT_WORKFLOW = Workflow(
    name="contract_musician",
    description="Per-musician contract slice or single-event contract link",
    initial_state="pending",
    states=("pending", "sent", "signed", "rejected", "cancelled"),
    transitions=(
        Transition("pending", "sent", action="send"),
        Transition("pending", "signed", action="sign", guard=TOKEN_BOUND),
        Transition("pending", "rejected", action="reject", guard=TOKEN_BOUND),
        Transition("sent", "signed", action="sign", guard=TOKEN_BOUND),
        Transition("sent", "rejected", action="reject", guard=TOKEN_BOUND),
        Transition("pending", "cancelled", action="cancel"),
        Transition("sent", "cancelled", action="cancel"),
    ),
    terminal_states=("signed", "rejected", "cancelled"),
)

CONTRACT_DATE_WORKFLOW = Workflow(
    name="contract_date",
    description="One scheduled date inside a contract slice",
    initial_state="pending",
    states=("pending", "included", "sent", "signed", "rejected", "cancelled"),
    transitions=(
        Transition("pending", "included", action="include"),
        Transition("pending", "sent", action="send"),
        Transition("included", "sent", action="send"),
        Transition("pending", "signed", action="sign", guard=TOKEN_BOUND),
        Transition("included", "signed", action="sign", guard=TOKEN_BOUND),
        Transition("sent", "signed", action="sign", guard=TOKEN_BOUND),
        Transition("pending", "rejected", action="reject", guard=TOKEN_BOUND),
        Transition("included", "rejected", action="reject", guard=TOKEN_BOUND),
        Transition("sent", "rejected", action="reject", guard=TOKEN_BOUND),
        Transition("pending", "cancelled", action="cancel"),
        Transition("included", "cancelled", action="cancel"),
        Transition("sent", "cancelled", action="cancel"),
        # Cancelling the slice withdraws dates the musician already signed.
        Transition("signed", "cancelled", action="cancel"),
    ),
    terminal_states=("rejected", "cancelled"),
)

MONTHLY_CONTRACT_WORKFLOW = Workflow(
    name="monthly_contract",
    description="Parent (planner, month, year) contract",
    initial_state="draft",
    states=("draft", "sent", "in-progress", "completed", "cancelled"),
    transitions=(
        Transition("draft", "sent", action="send"),
        Transition("sent", "in-progress", action="respond"),
        Transition("draft", "completed", action="complete"),
        Transition("sent", "completed", action="complete"),
        Transition("in-progress", "completed", action="complete"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("sent", "cancelled", action="cancel"),
        Transition("in-progress", "cancelled", action="cancel"),
    ),
    terminal_states=("completed", "cancelled"),
)

INVOICE_WORKFLOW = Workflow(
    name="monthly_invoice",
    description="Musician payout invoice, strictly forward",
    initial_state="draft",
    states=("draft", "finalized", "paid"),
    transitions=(
        Transition("draft", "finalized", action="finalize"),
        Transition("finalized", "paid", action="mark_paid"),
    ),
    terminal_states=("paid",),
)

INVITATION_WORKFLOW = Workflow(
    name="invitation",
    description="Outreach to a musician for one event date",
    initial_state="pending",
    states=("pending", "accepted", "declined", "confirmed", "rejected"),
    transitions=(
        Transition("pending", "accepted", action="accept"),
        Transition("pending", "declined", action="decline"),
        Transition("pending", "confirmed", action="confirm"),
        Transition("accepted", "confirmed", action="confirm"),
        Transition("pending", "rejected", action="reject"),
        Transition("accepted", "rejected", action="reject"),
    ),
    terminal_states=("declined", "confirmed", "rejected"),
)
