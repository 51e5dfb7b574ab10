"""Onboarding step sequence."""

from enum import Enum


class Step(str, Enum):
    """Steps of the onboarding flow, in order."""

    # Initial
    START = "start"

    # Identity document
    AWAITING_FIRST_DOCUMENT = "awaiting_first_document"
    CONFIRMING_FIRST_DOCUMENT = "confirming_first_document"

    # Second document
    AWAITING_SECOND_DOCUMENT = "awaiting_second_document"
    CONFIRMING_SECOND_DOCUMENT = "confirming_second_document"

    # Offer
    CONFIRMING_PRICE = "confirming_price"
    GENERATING_DELIVERABLE = "generating_deliverable"

    # Terminal state
    COMPLETED = "completed"


# Fixed order; each step's successor is the next entry
STEP_SEQUENCE: tuple[Step, ...] = tuple(Step)


def next_step(step: Step) -> Step:
    """Get the successor of a step. The terminal step is its own successor."""
    index = STEP_SEQUENCE.index(step)
    return STEP_SEQUENCE[min(index + 1, len(STEP_SEQUENCE) - 1)]


def previous_step(step: Step) -> Step:
    """Get the predecessor of a step. The initial step is its own predecessor."""
    index = STEP_SEQUENCE.index(step)
    return STEP_SEQUENCE[max(index - 1, 0)]


def is_document_step(step: Step) -> bool:
    """Check if step is waiting for a document upload."""
    return step in {
        Step.AWAITING_FIRST_DOCUMENT,
        Step.AWAITING_SECOND_DOCUMENT,
    }
