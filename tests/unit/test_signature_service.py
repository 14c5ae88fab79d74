from datetime import datetime, timedelta, timezone

import jwt
import pytest

from portalflow.config import CountersignerConfig, SigningConfig
from portalflow.errors import ConfigError, SigningTokenError
from portalflow.integrations.signature import NdaStatus, SignatureService

SECRET = "portalflow-test-signing-secret-0123456789"


def _token(invite):
    return invite.signing_url.rsplit("/", 1)[-1]


@pytest.mark.asyncio
async def test_full_signing_lifecycle(signatures):
    invite = await signatures.send("nda-1", "ceo@acme.test", "Jo Acme")
    assert invite.signing_url.startswith("https://portal.test/sign/nda/")
    assert invite.expires_at - invite.sent_at == timedelta(days=30)
    assert signatures.get("nda-1").status is NdaStatus.PENDING_SIGNATURE

    signed = await signatures.sign(_token(invite), "Jo Acme", "data:image/png;base64,AAAA", signer_title="CEO", ip_address="10.0.0.1")
    assert signed.status is NdaStatus.PENDING_COUNTERSIGN
    assert signed.signer_signature.title == "CEO"
    assert signed.signer_signature.ip_address == "10.0.0.1"

    done = await signatures.countersign("nda-1")
    assert done.status is NdaStatus.COMPLETED
    assert done.countersignature.signed_by == "Chief Executive Officer"
    assert done.final_pdf_url == "/documents/nda-nda-1-signed.pdf"


@pytest.mark.asyncio
async def test_send_validates_inputs(signatures):
    with pytest.raises(ValueError, match="Missing required fields"):
        await signatures.send("nda-1", "")


@pytest.mark.asyncio
async def test_resend_supersedes_previous_link(signatures):
    first = await signatures.send("nda-1", "ceo@acme.test")
    second = await signatures.send("nda-1", "ceo@acme.test")
    with pytest.raises(SigningTokenError, match="Invalid signing link"):
        await signatures.sign(_token(first), "Jo", "sig")
    await signatures.sign(_token(second), "Jo", "sig")
    with pytest.raises(ValueError):
        await signatures.send("nda-1", "ceo@acme.test")


@pytest.mark.asyncio
async def test_signing_twice_is_rejected(signatures):
    invite = await signatures.send("nda-1", "ceo@acme.test")
    await signatures.sign(_token(invite), "Jo", "sig")
    with pytest.raises(ValueError, match="not awaiting signature"):
        await signatures.sign(_token(invite), "Jo", "sig")


@pytest.mark.asyncio
async def test_countersign_requires_signature(signatures):
    with pytest.raises(ValueError, match="not found"):
        await signatures.countersign("nda-404")
    await signatures.send("nda-1", "ceo@acme.test")
    with pytest.raises(ValueError, match="NDA must be signed before countersigning"):
        await signatures.countersign("nda-1")


def test_expired_and_tampered_tokens(signatures):
    issued = datetime.now(timezone.utc) - timedelta(days=31)
    token, _ = signatures.issue_token("nda-1", "ceo@acme.test", now=issued)
    with pytest.raises(SigningTokenError, match="expired"):
        signatures.verify_token(token)

    forged = jwt.encode({"sub": "nda-1", "jti": "x"}, "another-secret-another-secret-0000", algorithm="HS256")
    with pytest.raises(SigningTokenError, match="Invalid signing link"):
        signatures.verify_token(forged)


def test_token_claims(signatures):
    token, token_id = signatures.issue_token("nda-1", "ceo@acme.test")
    claims = signatures.verify_token(token)
    assert claims["sub"] == "nda-1"
    assert claims["email"] == "ceo@acme.test"
    assert claims["jti"] == token_id


def test_from_config():
    service = SignatureService.from_config(
        SigningConfig(
            secret=SECRET,
            base_url="https://portal.test/",
            link_ttl_days=7,
            countersigner=CountersignerConfig(name="Pat Lee", title="COO"),
        )
    )
    assert service.base_url == "https://portal.test"
    assert service.link_ttl == timedelta(days=7)
    assert service.countersigner.name == "Pat Lee"


def test_from_config_requires_secret():
    assert SigningConfig().secret is None
    with pytest.raises(ConfigError, match="Signing secret is not configured"):
        SignatureService.from_config(SigningConfig())
