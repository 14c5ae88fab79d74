"""NDA e-signature: signing links, signer signature and countersignature."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional

import jwt
from pydantic import BaseModel

from ..config import CountersignerConfig, SigningConfig
from ..constants import SIGNING_LINK_TTL_DAYS, SIGNING_TOKEN_ALGORITHM
from ..errors import ConfigError, SigningTokenError

logger = logging.getLogger(__name__)


class NdaStatus(str, Enum):
    DRAFT = "draft"
    PENDING_SIGNATURE = "pending_signature"
    PENDING_COUNTERSIGN = "pending_countersign"
    COMPLETED = "completed"


class SignatureInfo(BaseModel):
    signed_by: str
    signed_at: datetime
    ip_address: str = "unknown"
    title: Optional[str] = None
    signature_image: Optional[str] = None


class SigningInvite(BaseModel):
    document_id: str
    recipient_email: str
    recipient_name: Optional[str] = None
    signing_url: str
    sent_at: datetime
    expires_at: datetime


class NdaEnvelope(BaseModel):
    document_id: str
    recipient_email: str
    recipient_name: Optional[str] = None
    status: NdaStatus = NdaStatus.DRAFT
    token_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    signer_signature: Optional[SignatureInfo] = None
    countersignature: Optional[SignatureInfo] = None
    final_pdf_url: Optional[str] = None


class SignatureService:
    """Issue signing links and track NDA envelopes through to countersignature.

    Envelopes are held in memory; links are signed JWTs that carry the
    document id, so a link is only honoured for the envelope it was issued
    for and only until it expires.
    """

    def __init__(
        self,
        secret: str,
        base_url: str = "http://localhost:3000",
        countersigner: Optional[CountersignerConfig] = None,
        link_ttl_days: int = SIGNING_LINK_TTL_DAYS,
    ) -> None:
        self._secret = secret
        self.base_url = base_url.rstrip("/")
        self.countersigner = countersigner or CountersignerConfig()
        self.link_ttl = timedelta(days=link_ttl_days)
        self._envelopes: Dict[str, NdaEnvelope] = {}

    @classmethod
    def from_config(cls, config: SigningConfig) -> "SignatureService":
        if not config.secret:
            raise ConfigError(
                "Signing secret is not configured; set signing.secret or PORTALFLOW_SIGNING_SECRET"
            )
        return cls(
            secret=config.secret,
            base_url=config.base_url,
            countersigner=config.countersigner,
            link_ttl_days=config.link_ttl_days,
        )

    # ------------------------------------------------------------------
    def issue_token(
        self, document_id: str, recipient_email: str, now: Optional[datetime] = None
    ) -> tuple[str, str]:
        now = now or datetime.now(timezone.utc)
        token_id = secrets.token_urlsafe(12)
        claims = {
            "sub": document_id,
            "email": recipient_email,
            "jti": token_id,
            "iat": now,
            "exp": now + self.link_ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=SIGNING_TOKEN_ALGORITHM), token_id

    def verify_token(self, token: str) -> dict:
        try:
            return jwt.decode(token, self._secret, algorithms=[SIGNING_TOKEN_ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise SigningTokenError("Signing link has expired") from e
        except jwt.InvalidTokenError as e:
            raise SigningTokenError("Invalid signing link") from e

    def get(self, document_id: str) -> Optional[NdaEnvelope]:
        return self._envelopes.get(document_id)

    # ------------------------------------------------------------------
    async def send(
        self,
        document_id: str,
        recipient_email: str,
        recipient_name: Optional[str] = None,
    ) -> SigningInvite:
        if not document_id or not recipient_email:
            raise ValueError("Missing required fields: documentId, recipientEmail")
        existing = self._envelopes.get(document_id)
        if existing and existing.status in (NdaStatus.PENDING_COUNTERSIGN, NdaStatus.COMPLETED):
            raise ValueError(f"NDA {document_id} has already been signed")

        now = datetime.now(timezone.utc)
        token, token_id = self.issue_token(document_id, recipient_email, now=now)
        self._envelopes[document_id] = NdaEnvelope(
            document_id=document_id,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            status=NdaStatus.PENDING_SIGNATURE,
            token_id=token_id,
            sent_at=now,
        )
        logger.info(f"NDA {document_id} sent for signature to {recipient_email}")
        return SigningInvite(
            document_id=document_id,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            signing_url=f"{self.base_url}/sign/nda/{token}",
            sent_at=now,
            expires_at=now + self.link_ttl,
        )

    async def sign(
        self,
        token: str,
        signer_name: str,
        signature_data: str,
        signer_title: Optional[str] = None,
        ip_address: str = "unknown",
    ) -> NdaEnvelope:
        if not token or not signer_name or not signature_data:
            raise ValueError("Missing required fields: token, signerName, signatureData")
        claims = self.verify_token(token)
        envelope = self._envelopes.get(claims["sub"])
        # A re-sent link supersedes earlier ones.
        if envelope is None or envelope.token_id != claims.get("jti"):
            raise SigningTokenError("Invalid signing link")
        if envelope.status is not NdaStatus.PENDING_SIGNATURE:
            raise ValueError(f"NDA {envelope.document_id} is not awaiting signature")

        envelope.signer_signature = SignatureInfo(
            signed_by=signer_name,
            signed_at=datetime.now(timezone.utc),
            ip_address=ip_address,
            title=signer_title,
            signature_image=signature_data,
        )
        envelope.status = NdaStatus.PENDING_COUNTERSIGN
        logger.info(f"NDA {envelope.document_id} signed by {signer_name}")
        return envelope

    async def countersign(self, document_id: str, ip_address: str = "unknown") -> NdaEnvelope:
        if not document_id:
            raise ValueError("Missing required field: documentId")
        envelope = self._envelopes.get(document_id)
        if envelope is None:
            raise ValueError(f"NDA {document_id} not found")
        if envelope.status is not NdaStatus.PENDING_COUNTERSIGN:
            raise ValueError("NDA must be signed before countersigning")

        envelope.countersignature = SignatureInfo(
            signed_by=self.countersigner.name,
            signed_at=datetime.now(timezone.utc),
            ip_address=ip_address,
            title=self.countersigner.title,
        )
        envelope.status = NdaStatus.COMPLETED
        envelope.final_pdf_url = f"/documents/nda-{document_id}-signed.pdf"
        logger.info(f"NDA {document_id} countersigned by {self.countersigner.name}")
        return envelope
