"""
Email notifications through the Dynatrace Email API
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from src.logging import get_logger

from .client import DynatraceHttpClient

logger = get_logger('EMAIL')

EMAIL_API_PATH = "/platform/email/v1/emails"
MAX_RECIPIENTS = 10


class EmailRecipients(BaseModel):
    email_addresses: List[str] = Field(..., alias="emailAddresses", description="Recipient addresses")

    class Config:
        populate_by_name = True


class EmailBody(BaseModel):
    body: str = Field(..., description="Plain text content of the email")
    content_type: str = Field("text/plain", alias="contentType", description="Only text/plain is supported")

    class Config:
        populate_by_name = True


class EmailRequest(BaseModel):
    """Request body of POST /platform/email/v1/emails"""
    to_recipients: EmailRecipients = Field(..., alias="toRecipients")
    cc_recipients: Optional[EmailRecipients] = Field(None, alias="ccRecipients")
    bcc_recipients: Optional[EmailRecipients] = Field(None, alias="bccRecipients")
    subject: str = Field(..., description="Subject line")
    body: EmailBody

    class Config:
        populate_by_name = True

    @property
    def total_recipients(self) -> int:
        total = len(self.to_recipients.email_addresses)
        for recipients in (self.cc_recipients, self.bcc_recipients):
            if recipients:
                total += len(recipients.email_addresses)
        return total


class EmailSendResult(BaseModel):
    """Outcome of an accepted email request"""
    success: bool = Field(..., description="True once the API accepted the request")
    request_id: str = Field(..., description="Request ID assigned by Dynatrace")
    message: str = Field("", description="Status message from the API")
    invalid_destinations: Optional[List[str]] = Field(None, description="Addresses rejected as invalid")
    bouncing_destinations: Optional[List[str]] = Field(None, description="Addresses known to bounce")
    complaining_destinations: Optional[List[str]] = Field(None, description="Addresses that reported spam")


async def send_email(client: DynatraceHttpClient, email_request: EmailRequest) -> EmailSendResult:
    """
    Send a plain text email.

    Args:
        client: Dynatrace HTTP client with the email:emails:send scope
        email_request: Recipients, subject and body

    Returns:
        EmailSendResult with request ID and rejected destinations, if any

    Raises:
        ValueError: If more than 10 recipients are given across TO, CC and BCC
        RuntimeError: If the Email API rejects the request
    """
    total = email_request.total_recipients
    if total > MAX_RECIPIENTS:
        raise ValueError(
            f"Total recipients ({total}) exceeds maximum limit of {MAX_RECIPIENTS} across TO, CC, and BCC fields"
        )

    body = email_request.model_dump(by_alias=True, exclude_none=True)
    body["body"]["contentType"] = "text/plain"

    try:
        response = await client.request(
            method="POST",
            path=EMAIL_API_PATH,
            json_data=body,
            headers={"Content-Type": "application/json;charset=UTF-8"},
            expected_status=(202,)
        ) or {}
    except Exception as e:
        logger.error(f"email request failed | recipients:{total} | error:{e}")
        raise RuntimeError(f"Error sending email: {e}") from e

    rejected = response.get("rejectedDestinations") or {}
    result = EmailSendResult(
        success=True,
        request_id=response.get("requestId", ""),
        message=response.get("message", ""),
        invalid_destinations=response.get("invalidDestinations") or None,
        bouncing_destinations=rejected.get("bouncingDestinations") or None,
        complaining_destinations=rejected.get("complainingDestinations") or None,
    )
    logger.info(f"email accepted | request_id:{result.request_id} | recipients:{total}")
    return result
