"""
Step registry.

Each step of the flow has one configuration entry. Entries are a closed
set of dataclasses, one per kind of step, each carrying only the fields
that kind needs; the router dispatches on them with a single match.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from policybot.core.flow.confirmation import StepCallback
from policybot.core.flow.content import ContentType
from policybot.core.flow.deliverable import DeliverableDispatcher
from policybot.core.session.models import DocumentKind, UserSession
from policybot.core.session.state import Step


WELCOME_MESSAGE = (
    "*Hey there!* 👋\n\n"
    "Let's get your *insurance policy* set up quickly.\n\n"
    "First send me a clear photo of your passport and I'll take care of the rest!\n\n"
    "*Supported formats:*\n"
    "📄 PDF\n"
    "📷 JPG, PNG, HEIC, TIFF, WebP"
)

CLOSING_MESSAGE = "Thanks for using our service!"


@dataclass(frozen=True)
class StartStep:
    """Greets the user and starts the flow."""

    accepts: frozenset[ContentType]
    expected_action: str
    welcome_message: str = WELCOME_MESSAGE


@dataclass(frozen=True)
class DocumentStep:
    """Waits for a document upload."""

    accepts: frozenset[ContentType]
    expected_action: str
    document_kind: DocumentKind


@dataclass(frozen=True)
class ConfirmationStep:
    """Waits for a yes/no reply."""

    accepts: frozenset[ContentType]
    expected_action: str
    on_accept: Optional[StepCallback] = field(default=None, compare=False)
    on_reject: Optional[StepCallback] = field(default=None, compare=False)


@dataclass(frozen=True)
class DeliverableStep:
    """Policy is being issued; any text retries the delivery."""

    accepts: frozenset[ContentType]
    expected_action: str


@dataclass(frozen=True)
class CompletedStep:
    """Terminal step."""

    accepts: frozenset[ContentType]
    expected_action: str
    closing_message: str = CLOSING_MESSAGE


StepConfig = Union[StartStep, DocumentStep, ConfirmationStep, DeliverableStep, CompletedStep]


def build_step_registry(dispatcher: DeliverableDispatcher) -> dict[Step, StepConfig]:
    """
    Build the configuration for every step.

    Args:
        dispatcher: Sends the policy once the price is accepted

    Raises:
        ValueError: If a step has no entry
    """

    async def reject_first_document(user_id: int, session: UserSession) -> None:
        session.set_document(DocumentKind.PASSPORT, None)
        session.retreat()

    async def reject_second_document(user_id: int, session: UserSession) -> None:
        session.set_document(DocumentKind.DRIVERS_LICENSE, None)
        session.retreat()

    async def accept_price(user_id: int, session: UserSession) -> None:
        session.advance()
        await dispatcher.dispatch(user_id, session)

    async def reject_price(user_id: int, session: UserSession) -> None:
        # Price is fixed; the user stays until they accept
        return None

    text_only = frozenset({ContentType.TEXT})
    uploads = frozenset({ContentType.DOCUMENT, ContentType.PHOTO})

    registry: dict[Step, StepConfig] = {
        Step.START: StartStep(
            accepts=frozenset({ContentType.COMMAND}),
            expected_action="use a /start command first",
        ),
        Step.AWAITING_FIRST_DOCUMENT: DocumentStep(
            accepts=uploads,
            expected_action="send your passport photo",
            document_kind=DocumentKind.PASSPORT,
        ),
        Step.CONFIRMING_FIRST_DOCUMENT: ConfirmationStep(
            accepts=text_only,
            expected_action="confirm your passport data",
            on_reject=reject_first_document,
        ),
        Step.AWAITING_SECOND_DOCUMENT: DocumentStep(
            accepts=uploads,
            expected_action="send your driver's license photo",
            document_kind=DocumentKind.DRIVERS_LICENSE,
        ),
        Step.CONFIRMING_SECOND_DOCUMENT: ConfirmationStep(
            accepts=text_only,
            expected_action="confirm your driver's license data",
            on_reject=reject_second_document,
        ),
        Step.CONFIRMING_PRICE: ConfirmationStep(
            accepts=text_only,
            expected_action="confirm or reject our offer",
            on_accept=accept_price,
            on_reject=reject_price,
        ),
        Step.GENERATING_DELIVERABLE: DeliverableStep(
            accepts=text_only,
            expected_action="wait for your policy document",
        ),
        Step.COMPLETED: CompletedStep(
            accepts=frozenset({ContentType.TEXT, ContentType.COMMAND}),
            expected_action="enjoy your newly issued policy",
        ),
    }

    missing = [step.value for step in Step if step not in registry]
    if missing:
        raise ValueError(f"Steps without configuration: {', '.join(missing)}")

    return registry


def describe_accepted(config: StepConfig) -> str:
    """Accepted content types for a retry prompt, e.g. "document or photo"."""
    return " or ".join(sorted(content.value for content in config.accepts))
