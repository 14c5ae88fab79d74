"""Action handlers binding gateway action kinds to portal collaborators."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..contracts import ActionKind, FlowVariant, Prospect, SubmissionStatus, variant_for_document_type
from ..integrations.apollo import ProspectSearch, RevealCache, RevealField, SearchCriteria
from ..integrations.mattermost import Notifier, WebhookEvent
from ..integrations.signature import SignatureService
from ..integrations.textgen import GenerationTask, TextGenerator
from ..persistence.models import ProposalRecord
from ..persistence.repository import PortalRepository
from .base import ActionGateway

logger = logging.getLogger(__name__)


def _require(collaborator: Any, name: str) -> Any:
    if collaborator is None:
        raise RuntimeError(f"{name} is not configured")
    return collaborator


class PortalActionHandlers:
    """One async handler per :class:`ActionKind`.

    Handlers receive the payload built by the wizard (``fields``,
    ``derived``, ``proposal_id``, ``variant`` and any caller extras) and
    either return a JSON-friendly value or raise with a user-facing message.
    """

    def __init__(
        self,
        repository: Optional[PortalRepository] = None,
        signatures: Optional[SignatureService] = None,
        notifier: Optional[Notifier] = None,
        text_generator: Optional[TextGenerator] = None,
        prospects: Optional[ProspectSearch] = None,
        reveal_cache: Optional[RevealCache] = None,
    ) -> None:
        self.repository = repository
        self.signatures = signatures
        self.notifier = notifier
        self.text_generator = text_generator
        self.prospects = prospects
        if reveal_cache is None and prospects is not None:
            reveal_cache = RevealCache(prospects, repository)
        self.reveal_cache = reveal_cache

    def register_all(self, gateway: ActionGateway) -> ActionGateway:
        gateway.register(ActionKind.SAVE_DRAFT, self.save_draft)
        gateway.register(ActionKind.SUBMIT, self.submit)
        gateway.register(ActionKind.CREATE_PROJECT, self.create_project)
        gateway.register(ActionKind.SEND_FOR_SIGNATURE, self.send_for_signature)
        gateway.register(ActionKind.COUNTERSIGN, self.countersign)
        gateway.register(ActionKind.DEEP_RESEARCH, self.deep_research)
        gateway.register(ActionKind.RECOMMEND_AFFILIATES, self.recommend_affiliates)
        gateway.register(ActionKind.GENERATE_SLIDES, self.generate_slides)
        gateway.register(ActionKind.ENHANCE_TEXT, self.enhance_text)
        gateway.register(ActionKind.REVEAL_CONTACT, self.reveal_contact)
        gateway.register(ActionKind.SEARCH_PROSPECTS, self.search_prospects)
        gateway.register(ActionKind.SAVE_PROSPECT_LIST, self.save_prospect_list)
        gateway.register(ActionKind.NOTIFY, self.notify)
        return gateway

    # ------------------------------------------------------------------
    # Proposals
    def _proposal(self, payload: Dict[str, Any], status: SubmissionStatus) -> ProposalRecord:
        fields = dict(payload.get("fields") or {})
        variant = payload.get("variant") or variant_for_document_type(fields.get("document_type"))
        return ProposalRecord(
            id=payload.get("proposal_id") or f"proposal-{uuid.uuid4()}",
            name=str(fields.get("name") or fields.get("supplier_name") or ""),
            variant=FlowVariant(variant),
            document_type=fields.get("document_type"),
            status=status,
            fields=fields,
            derived=dict(payload.get("derived") or {}),
        )

    async def _existing(self, proposal_id: str) -> Optional[ProposalRecord]:
        repository = _require(self.repository, "Document store")
        return await repository.get_proposal(proposal_id)

    async def _notify(self, event: WebhookEvent, data: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        result = await self.notifier.send(event, data)
        if not result.success:
            logger.warning(f"Notification {event.value} not delivered: {result.error}")

    async def save_draft(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        repository = _require(self.repository, "Document store")
        existing = await self._existing(payload.get("proposal_id") or "")
        record = self._proposal(payload, existing.status if existing else SubmissionStatus.DRAFT)
        if existing:
            record = record.model_copy(
                update={
                    "signature_status": existing.signature_status,
                    "linked_project_id": existing.linked_project_id,
                    "submitted_at": existing.submitted_at,
                    "submitted_by": existing.submitted_by,
                }
            )
        stored = await repository.save_proposal(record)
        return {"proposal_id": stored.id, "status": stored.status.value}

    async def submit(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        repository = _require(self.repository, "Document store")
        record = self._proposal(payload, SubmissionStatus.PENDING_SIGNATURE)
        if not record.name.strip():
            raise ValueError("Please enter a proposal name first")
        record.submitted_at = datetime.now(timezone.utc)
        record.submitted_by = payload.get("submitted_by")
        record.signature_status = "pending"
        stored = await repository.save_proposal(record)
        await self._notify(
            WebhookEvent.PROPOSAL_SUBMITTED,
            {
                "name": stored.name,
                "document_type": stored.document_type,
                "submitted_by": stored.submitted_by,
                "status": stored.status.value,
            },
        )
        return {"proposal_id": stored.id, "status": stored.status.value}

    async def create_project(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        repository = _require(self.repository, "Document store")
        record = self._proposal(payload, SubmissionStatus.ACTIVE)
        if not record.name.strip():
            raise ValueError("Please enter a proposal name first")
        record.linked_project_id = f"project-{uuid.uuid4().hex[:12]}"
        record.submitted_at = datetime.now(timezone.utc)
        record.submitted_by = payload.get("submitted_by")
        stored = await repository.save_proposal(record)
        logger.info(f"Created project {stored.linked_project_id} from proposal {stored.id}")
        return {
            "proposal_id": stored.id,
            "project_id": stored.linked_project_id,
            "status": stored.status.value,
        }

    # ------------------------------------------------------------------
    # Signatures
    async def send_for_signature(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        signatures = _require(self.signatures, "Signature service")
        fields = payload.get("fields") or {}
        document_id = payload.get("document_id") or payload.get("proposal_id")
        recipient_email = payload.get("recipient_email") or fields.get("signer_email")
        recipient_name = payload.get("recipient_name") or fields.get("signer_name")
        invite = await signatures.send(document_id, recipient_email, recipient_name)

        if self.repository is not None:
            record = self._proposal(payload, SubmissionStatus.PENDING_SIGNATURE)
            record.signature_status = "pending"
            await self.repository.save_proposal(record)
        await self._notify(
            WebhookEvent.NDA_SENT,
            {
                "document_id": document_id,
                "recipient_name": recipient_name,
                "recipient_email": recipient_email,
            },
        )
        return {"proposal_id": document_id, **invite.model_dump(mode="json")}

    async def countersign(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        signatures = _require(self.signatures, "Signature service")
        document_id = payload.get("document_id") or payload.get("proposal_id")
        envelope = await signatures.countersign(document_id, payload.get("ip_address") or "unknown")

        if self.repository is not None:
            existing = await self.repository.get_proposal(document_id)
            if existing is not None:
                await self.repository.save_proposal(
                    existing.model_copy(
                        update={"status": SubmissionStatus.COMPLETED, "signature_status": "completed"}
                    )
                )
        await self._notify(
            WebhookEvent.NDA_COMPLETED,
            {
                "document_id": document_id,
                "signed_by": envelope.signer_signature.signed_by if envelope.signer_signature else None,
                "countersigned_by": envelope.countersignature.signed_by if envelope.countersignature else None,
            },
        )
        return {
            "proposal_id": document_id,
            "status": envelope.status.value,
            "countersigned_by": envelope.countersignature.signed_by if envelope.countersignature else None,
            "pdf_url": envelope.final_pdf_url,
        }

    # ------------------------------------------------------------------
    # Text generation
    async def _generate(self, task: GenerationTask, context: Dict[str, Any]) -> Dict[str, Any]:
        generator = _require(self.text_generator, "Text generator")
        result = await generator.generate(task, context)
        return result.model_dump(mode="json")

    async def deep_research(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        fields = payload.get("fields") or {}
        websites = [w for w in fields.get("research_websites") or [] if str(w).strip()]
        documents = [d for d in fields.get("research_documents") or [] if str(d).strip()]
        if not websites and not documents:
            raise ValueError("Please add at least one website or document to analyze")
        return await self._generate(
            GenerationTask.DEEP_RESEARCH,
            {
                "supplier_name": fields.get("supplier_name"),
                "target_oem": fields.get("target_oem"),
                "websites": websites,
                "documents": documents,
            },
        )

    async def recommend_affiliates(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        fields = payload.get("fields") or {}
        derived = payload.get("derived") or {}
        if not derived.get("deep_research_result"):
            raise ValueError("Run the deep research step before requesting recommendations")
        return await self._generate(
            GenerationTask.RECOMMEND_AFFILIATES,
            {
                "supplier_name": fields.get("supplier_name"),
                "target_oem": fields.get("target_oem"),
                "research": derived["deep_research_result"],
            },
        )

    async def generate_slides(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        fields = payload.get("fields") or {}
        derived = payload.get("derived") or {}
        return await self._generate(
            GenerationTask.GENERATE_SLIDES,
            {
                "supplier_name": fields.get("supplier_name"),
                "target_oem": fields.get("target_oem"),
                "research": derived.get("deep_research_result"),
                "affiliates": derived.get("affiliate_recommendations"),
                "milestones": fields.get("project_milestones"),
            },
        )

    async def enhance_text(self, payload: Dict[str, Any]) -> str:
        generator = _require(self.text_generator, "Text generator")
        text = payload.get("text") or ""
        if not text.strip():
            raise ValueError("Please enter some text to enhance")
        return await generator.enhance(text, payload.get("context"))

    # ------------------------------------------------------------------
    # Prospects
    async def search_prospects(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        prospects = _require(self.prospects, "Prospect search")
        criteria = SearchCriteria.model_validate(payload.get("criteria") or {})
        if criteria.is_empty():
            raise ValueError("Please describe who you are looking for")
        results = await prospects.search(criteria, page=int(payload.get("page") or 1))
        return [p.model_dump(mode="json") for p in results]

    async def reveal_contact(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        cache = _require(self.reveal_cache, "Prospect search")
        prospect = Prospect.model_validate(payload["prospect"])
        field = RevealField(payload.get("field") or RevealField.EMAIL)
        value = await cache.reveal(prospect, field)
        return {"prospect_id": prospect.id, "field": field.value, "value": value}

    async def save_prospect_list(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        repository = _require(self.repository, "Document store")
        name = (payload.get("list_name") or "").strip()
        if not name:
            raise ValueError("Please name the list")
        items = [Prospect.model_validate(item) for item in payload.get("items") or []]
        added = await repository.merge_into_list(name, items)
        return {"list_name": name, "added": added, "skipped": len(items) - added}

    # ------------------------------------------------------------------
    async def notify(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        notifier = _require(self.notifier, "Notifier")
        event = payload.get("event") or WebhookEvent.MESSAGE
        result = await notifier.send(event, payload.get("data") or {})
        if not result.success:
            raise RuntimeError(result.error or "Notification failed")
        return result.model_dump()
