"""
Quote email delivery over SMTP.

One message per recipient: admins and the customer never see each other's
addresses, and the caller can track delivery per address. Transport
errors surface as DeliveryFailure so the orchestrator can decide whether
to keep going.
"""

import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from ..core.config import Config
from ..core.errors import DeliveryFailure
from ..forms.quote_request import QuoteRequest

log = logging.getLogger("quotes.email")


def _items_summary(quote: QuoteRequest) -> str:
    lines = []
    for i, item in enumerate(quote.items, 1):
        lines.append(f"  {i}. {item.description[:80]} x {item.quantity:g} "
                     f"@ ${item.unit_price:,.2f} = ${item.line_total:,.2f}")
    return "\n".join(lines)


class EmailSender:
    """Send quote PDFs via SMTP."""

    def __init__(self, config: Config):
        self.smtp_host = config.smtp_host
        self.smtp_port = config.smtp_port
        self.smtp_user = config.smtp_user
        self.password = config.smtp_password
        self.email_addr = config.mail_from or config.smtp_user
        self.from_name = config.mail_from_name

    def build_admin_email(self, quote: QuoteRequest, filename: str) -> dict:
        who = quote.name + (f" ({quote.company})" if quote.company else "")
        body = f"""New quote request from {who}.

Email: {quote.email or "(not provided)"}
Phone: {quote.phone or "(not provided)"}

Items:
{_items_summary(quote)}

Subtotal: ${quote.subtotal:,.2f}

Message:
{quote.message or "(none)"}

The generated quote is attached ({filename})."""
        return {
            "subject": f"New quote request - {quote.name}",
            "body": body,
            "filename": filename,
        }

    def build_customer_email(self, quote: QuoteRequest, filename: str) -> dict:
        body = f"""Dear {quote.name},

Thank you for your quote request. A copy is attached for your records.

Items:
{_items_summary(quote)}

Subtotal: ${quote.subtotal:,.2f}

We will be in touch shortly.

Best regards,
{self.from_name}"""
        return {
            "subject": "Your quote request",
            "body": body,
            "filename": filename,
        }

    def _build_message(self, to: str, draft: dict, attachment: bytes) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = formataddr((self.from_name, self.email_addr))
        msg["To"] = to
        msg["Subject"] = draft["subject"]
        msg.attach(MIMEText(draft["body"], "plain", "utf-8"))

        part = MIMEApplication(attachment, _subtype="pdf")
        part.add_header("Content-Disposition", "attachment", filename=draft["filename"])
        msg.attach(part)
        return msg

    def send(self, to: str, draft: dict, attachment: bytes) -> bool:
        """Send ``draft`` to a single address. Raises DeliveryFailure."""
        msg = self._build_message(to, draft, attachment)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailure(f"SMTP send failed: {e}", recipient=to) from e
        log.info("Sent '%s' to %s", draft["subject"], to, extra={"recipient": to})
        return True
