"""Certificate delivery over SendGrid."""
import base64
import html
import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Mail, Email, To, Content, Attachment, FileContent, FileName, FileType,
    Disposition, MailSettings, SandBoxMode
)

from app.config import Settings, get_settings
from app.exceptions import DeliveryError, NoAttachmentContent

logger = logging.getLogger(__name__)

DEFAULT_COLLEGE_NAME = "Institution's Innovation Council"


def attachment_filename(participant_name: Optional[str]) -> str:
    """Certificate_<Name>.pdf with whitespace runs collapsed to underscores."""
    name = (participant_name or "").strip() or "Participant"
    safe_name = re.sub(r"\s+", "_", name)
    return f"Certificate_{safe_name}.pdf"


def certificate_subject(event_name: str) -> str:
    return f"Your Certificate of Participation — {event_name}"


def build_certificate_email_html(
    participant_name: str,
    event_name: str,
    certificate_id: str,
    college_name: Optional[str] = None,
    issued_date: Optional[str] = None,
) -> str:
    """Branded HTML body for the certificate email."""
    college = html.escape(college_name or DEFAULT_COLLEGE_NAME)
    issued = issued_date or datetime.now(timezone.utc).strftime("%d %B %Y")
    year = datetime.now(timezone.utc).year

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8"/>
  <style>
    body {{ font-family: Georgia, serif; margin: 0; padding: 0; background: #f4f4f4; }}
    .container {{ max-width: 600px; margin: 30px auto; background: #fff; border-radius: 8px; overflow: hidden; }}
    .header {{ background: linear-gradient(135deg, #8B1A1A, #C2410C); padding: 30px; text-align: center; }}
    .header h1 {{ color: #fff; margin: 0; font-size: 22px; letter-spacing: 1px; }}
    .header p {{ color: rgba(255,255,255,0.8); margin: 5px 0 0; font-size: 13px; }}
    .body {{ padding: 30px; color: #333; }}
    .cert-box {{ background: #FFF8F0; border-left: 4px solid #C2410C; padding: 18px 20px; margin: 20px 0; }}
    .cert-box .event {{ font-size: 15px; color: #7C2D12; font-weight: bold; margin-bottom: 6px; }}
    .cert-box .meta {{ font-size: 13px; color: #666; }}
    .cert-id {{ font-family: monospace; font-size: 12px; color: #999; margin-top: 10px; }}
    .note {{ font-size: 13px; color: #555; line-height: 1.7; }}
    .footer {{ background: #f9f9f9; padding: 18px 30px; text-align: center; font-size: 12px; color: #999; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>Certificate of Participation</h1>
      <p>{college}</p>
    </div>
    <div class="body">
      <p>Dear <strong>{html.escape(participant_name or "Participant")}</strong>,</p>
      <p class="note">
        We are delighted to present you with your Certificate of Participation.
        Please find your certificate attached to this email.
      </p>
      <div class="cert-box">
        <div class="event">{html.escape(event_name or "")}</div>
        <div class="meta">Issued on: {issued}</div>
        <div class="cert-id">Certificate ID: {html.escape(certificate_id)}</div>
      </div>
      <p class="note">
        This certificate acknowledges your participation in the event.
        You can verify it at any time using the certificate ID above.
      </p>
    </div>
    <div class="footer">
      This is an auto-generated email. Please do not reply to this message.<br/>
      &copy; {year} {college}
    </div>
  </div>
</body>
</html>
"""


class CertificateMailer:
    """Send one certificate PDF as an email attachment."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[SendGridAPIClient] = None):
        self.settings = settings or get_settings()
        self.client = client or SendGridAPIClient(self.settings.SENDGRID_API_KEY)

    @staticmethod
    def _resolve_attachment(pdf_bytes: Optional[bytes], pdf_path: Optional[str]) -> bytes:
        if pdf_bytes:
            return pdf_bytes
        if pdf_path and os.path.isfile(pdf_path):
            with open(pdf_path, "rb") as f:
                return f.read()
        raise NoAttachmentContent("No PDF content provided. Supply either pdf_bytes or pdf_path.")

    async def send_certificate(
        self,
        to: str,
        participant_name: str,
        event_name: str,
        certificate_id: str,
        pdf_bytes: Optional[bytes] = None,
        pdf_path: Optional[str] = None,
        college_name: Optional[str] = None,
    ) -> Optional[str]:
        """
        Email a certificate.

        Returns:
            The SendGrid message id when the response carries one

        Raises:
            NoAttachmentContent: Neither source yields PDF bytes
            DeliveryError: The transport rejected or failed the send
        """
        content = self._resolve_attachment(pdf_bytes, pdf_path)
        filename = attachment_filename(participant_name)
        subject = certificate_subject(event_name)

        recipient_email = to
        recipient_name = participant_name
        if self.settings.TEST_EMAIL_OVERRIDE:
            recipient_email = self.settings.TEST_EMAIL_OVERRIDE
            recipient_name = f"TEST: {participant_name}"
            subject = f"[TEST for {to}] {subject}"

        message = Mail(
            from_email=Email(
                self.settings.SENDGRID_FROM_EMAIL,
                college_name or self.settings.SENDGRID_FROM_NAME,
            ),
            to_emails=To(recipient_email, recipient_name),
            subject=subject,
            html_content=Content(
                "text/html",
                build_certificate_email_html(participant_name, event_name, certificate_id, college_name),
            ),
        )

        if self.settings.SENDGRID_SANDBOX_MODE:
            message.mail_settings = MailSettings()
            message.mail_settings.sandbox_mode = SandBoxMode(enable=True)
            logger.info(f"Sandbox mode enabled for certificate email to {recipient_email}")

        message.add_attachment(Attachment(
            FileContent(base64.b64encode(content).decode()),
            FileName(filename),
            FileType("application/pdf"),
            Disposition("attachment"),
        ))

        logger.info(
            f"Sending certificate email: certificate={certificate_id}, to={recipient_email}, "
            f"sandbox={self.settings.SENDGRID_SANDBOX_MODE}"
        )
        try:
            response = self.client.send(message)
        except Exception as e:
            logger.error(f"Failed to send certificate {certificate_id} to {to}: {e}")
            raise DeliveryError(f"Failed to send certificate email: {e}") from e

        if response.status_code >= 400:
            raise DeliveryError(f"SendGrid returned status {response.status_code}")

        message_id = None
        if response.headers:
            message_id = response.headers.get("X-Message-Id")
        logger.info(
            f"Certificate email sent: status_code={response.status_code}, "
            f"certificate={certificate_id}, message_id={message_id}"
        )
        return message_id
