"""
Flow Module

Onboarding flow driven by inbound messages:
- Content: classification of what the user sent
- Steps: per-step configuration registry
- Documents: three-tier document ingestion
- Confirmation: two-tier yes/no resolution
- Deliverable: policy rendering and delivery
- Router: entry point tying it together
"""

from policybot.core.flow.content import ContentType, classify_content
from policybot.core.flow.confirmation import ConfirmationResolver, Decision, guess_decision
from policybot.core.flow.deliverable import DeliverableDispatcher, render_policy_document
from policybot.core.flow.documents import DocumentIngestionPipeline, create_document_summary
from policybot.core.flow.steps import StepConfig, build_step_registry
from policybot.core.flow.router import ContentRouter, get_router

__all__ = [
    # Content
    "ContentType",
    "classify_content",
    # Confirmation
    "ConfirmationResolver",
    "Decision",
    "guess_decision",
    # Deliverable
    "DeliverableDispatcher",
    "render_policy_document",
    # Documents
    "DocumentIngestionPipeline",
    "create_document_summary",
    # Steps
    "StepConfig",
    "build_step_registry",
    # Router
    "ContentRouter",
    "get_router",
]
