"""Tests for sending emails."""

import httpx
import pytest

from src.dynatrace.client import DynatraceHttpClient
from src.dynatrace.email import EmailBody, EmailRecipients, EmailRequest, send_email

from tests.conftest import ENVIRONMENT_URL, request_json


def make_request(to, cc=None, bcc=None) -> EmailRequest:
    return EmailRequest(
        to_recipients=EmailRecipients(email_addresses=to),
        cc_recipients=EmailRecipients(email_addresses=cc) if cc else None,
        bcc_recipients=EmailRecipients(email_addresses=bcc) if bcc else None,
        subject="Problem P-1",
        body=EmailBody(body="CPU is high"),
    )


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_accepted_request(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(202, json={
                "requestId": "req-1",
                "message": "Email sent",
                "invalidDestinations": ["nope"],
                "rejectedDestinations": {"bouncingDestinations": [], "complainingDestinations": ["c@example.com"]},
            })

        client = DynatraceHttpClient(ENVIRONMENT_URL, "token", transport=httpx.MockTransport(handler))
        result = await send_email(client, make_request(["a@example.com"], cc=["b@example.com"]))

        assert result.success is True
        assert result.request_id == "req-1"
        assert result.invalid_destinations == ["nope"]
        assert result.bouncing_destinations is None
        assert result.complaining_destinations == ["c@example.com"]

        (request,) = seen
        assert request.url.path == "/platform/email/v1/emails"
        assert request_json(request) == {
            "toRecipients": {"emailAddresses": ["a@example.com"]},
            "ccRecipients": {"emailAddresses": ["b@example.com"]},
            "subject": "Problem P-1",
            "body": {"body": "CPU is high", "contentType": "text/plain"},
        }

    @pytest.mark.asyncio
    async def test_recipient_limit(self):
        def handler(request):
            raise AssertionError("must not be called")

        client = DynatraceHttpClient(ENVIRONMENT_URL, "token", transport=httpx.MockTransport(handler))
        request = make_request(
            [f"to{i}@example.com" for i in range(5)],
            cc=[f"cc{i}@example.com" for i in range(3)],
            bcc=[f"bcc{i}@example.com" for i in range(3)],
        )

        with pytest.raises(ValueError, match=r"Total recipients \(11\) exceeds maximum limit of 10"):
            await send_email(client, request)

    @pytest.mark.asyncio
    async def test_api_errors_are_wrapped(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": 400, "message": "Invalid recipient"}})

        client = DynatraceHttpClient(ENVIRONMENT_URL, "token", transport=httpx.MockTransport(handler))

        with pytest.raises(RuntimeError, match="Error sending email: Dynatrace API error 400: Invalid recipient"):
            await send_email(client, make_request(["a@example.com"]))
