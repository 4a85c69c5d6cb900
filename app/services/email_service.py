"""Email service for outbound SMTP notifications"""
import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Best-effort SMTP sender; failures are logged, never raised"""

    def __init__(self):
        self.enabled = settings.SMTP_ENABLED
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.from_email = settings.SMTP_FROM_EMAIL
        self.from_name = settings.SMTP_FROM_NAME

    def send_email(self, recipient: str, subject: str, html_body: str) -> bool:
        """
        Send an HTML email

        Args:
            recipient: Destination address
            subject: Subject line
            html_body: HTML content

        Returns:
            True if the message was handed to the SMTP server
        """
        if not self.enabled:
            logger.info(f"[DEV MODE] Email to {recipient} not sent (SMTP disabled): {subject}")
            return False

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = recipient
        message.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                server.starttls()
                if self.user:
                    server.login(self.user, self.password)
                server.sendmail(self.from_email, [recipient], message.as_string())

            logger.info(f"Email sent to {recipient}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {recipient}: {str(e)}")
            return False

    def send_new_message_email(
        self,
        recipient: str,
        sender_name: str,
        listing_title: str,
        message_preview: str,
        conversation_id: str
    ) -> bool:
        """Tell a user they have a new message about a listing"""
        link = f"{settings.FRONTEND_URL}/messages/{conversation_id}"
        preview = message_preview if len(message_preview) <= 200 else message_preview[:197] + "..."

        html_body = f"""
        <html>
          <body style="font-family: Arial, sans-serif; color: #222;">
            <h2>New message about "{escape(listing_title)}"</h2>
            <p><strong>{escape(sender_name)}</strong> wrote:</p>
            <blockquote style="border-left: 3px solid #ccc; padding-left: 12px;">{escape(preview)}</blockquote>
            <p><a href="{link}">Reply on {escape(settings.PROJECT_NAME)}</a></p>
          </body>
        </html>
        """

        return self.send_email(
            recipient=recipient,
            subject=f"New message from {sender_name}",
            html_body=html_body
        )


# Global service instance
email_service = EmailService()
