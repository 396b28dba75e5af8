from app.config.settings import settings
from app.db.models import ApplicationStatus, APPLICATION_STATUS_LABELS
from app.tasks.email_sender import send_email_task
from app.utils.context import get_request_id
from app.utils.logging import get_logger

logger = get_logger()

STATUS_EMAIL_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="text-align: center; padding: 20px 0; border-bottom: 2px solid #1e40af;">
    <h1 style="color: #1e40af; margin: 0;">Al-Xorazmiy University</h1>
  </div>
  <div style="padding: 30px 0;">
    <h2 style="color: #111827;">Dear {applicant_name},</h2>
    <p style="color: #374151; line-height: 1.6;">The status of your application has been updated:</p>
    <div style="background: #eff6ff; border-left: 4px solid #1e40af; padding: 15px 20px; margin: 20px 0;">
      <p style="margin: 0; color: #1e40af; font-weight: bold; font-size: 18px;">{status_label}</p>
    </div>
    <p style="color: #374151;">Sign in to your dashboard for details:</p>
    <div style="text-align: center; margin: 25px 0;">
      <a href="{dashboard_url}" style="background: #1e40af; color: #ffffff; padding: 12px 35px; border-radius: 8px; text-decoration: none; font-weight: bold;">Open Dashboard</a>
    </div>
  </div>
  <div style="border-top: 1px solid #e5e7eb; padding-top: 20px; text-align: center;">
    <p style="color: #9ca3af; font-size: 12px;">Al-Xorazmiy University Online Admissions Platform</p>
  </div>
</div>
"""

DOCUMENT_EMAIL_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="text-align: center; padding: 20px 0; border-bottom: 2px solid #1e40af;">
    <h1 style="color: #1e40af; margin: 0;">Al-Xorazmiy University</h1>
  </div>
  <div style="padding: 30px 0;">
    <h2 style="color: #111827;">Dear {applicant_name},</h2>
    <p style="color: #374151; line-height: 1.6;">Our admissions team has reviewed your {document_name}:</p>
    <div style="background: {background}; border-left: 4px solid {accent}; padding: 15px 20px; margin: 20px 0;">
      <p style="margin: 0; color: {accent}; font-weight: bold; font-size: 18px;">{headline}</p>
    </div>
    <p style="color: #374151; line-height: 1.6;">{instructions}</p>
    <div style="text-align: center; margin: 25px 0;">
      <a href="{dashboard_url}" style="background: #1e40af; color: #ffffff; padding: 12px 35px; border-radius: 8px; text-decoration: none; font-weight: bold;">Open Dashboard</a>
    </div>
  </div>
  <div style="border-top: 1px solid #e5e7eb; padding-top: 20px; text-align: center;">
    <p style="color: #9ca3af; font-size: 12px;">Al-Xorazmiy University Online Admissions Platform</p>
  </div>
</div>
"""

# Wording and colours per review outcome
DOCUMENT_OUTCOMES = {
    "verified": {
        "subject": "verified",
        "headline": "Verified",
        "instructions": "No further action is needed for this document.",
        "background": "#ecfdf5",
        "accent": "#047857",
    },
    "invalid": {
        "subject": "needs attention",
        "headline": "Invalid, please upload a new copy",
        "instructions": "Sign in to your dashboard and upload a corrected document.",
        "background": "#fef2f2",
        "accent": "#b91c1c",
    },
}


def _dashboard_url() -> str:
    return f"{settings.APP_URL.rstrip('/')}/dashboard"


class EmailService:
    """Builds outbound emails and hands them to the Celery worker"""

    @staticmethod
    def status_update_subject(status: ApplicationStatus) -> str:
        label = APPLICATION_STATUS_LABELS.get(status, status.value)
        return f"Al-Xorazmiy University - Application status updated: {label}"

    @staticmethod
    def status_update_html(applicant_name: str, status: ApplicationStatus) -> str:
        return STATUS_EMAIL_TEMPLATE.format(
            applicant_name=applicant_name,
            status_label=APPLICATION_STATUS_LABELS.get(status, status.value),
            dashboard_url=_dashboard_url(),
        )

    @staticmethod
    def document_verification_subject(document_name: str, outcome: str) -> str:
        wording = DOCUMENT_OUTCOMES[outcome]["subject"]
        return f"Al-Xorazmiy University - {document_name} {wording}"

    @staticmethod
    def document_verification_html(
        applicant_name: str, document_name: str, outcome: str
    ) -> str:
        wording = DOCUMENT_OUTCOMES[outcome]
        return DOCUMENT_EMAIL_TEMPLATE.format(
            applicant_name=applicant_name,
            document_name=document_name,
            headline=wording["headline"],
            instructions=wording["instructions"],
            background=wording["background"],
            accent=wording["accent"],
            dashboard_url=_dashboard_url(),
        )

    def _enqueue(self, to: str, subject: str, html: str, kind: str) -> bool:
        """Fire-and-forget; a failure to enqueue is logged, never raised"""
        try:
            send_email_task.delay(get_request_id() or "email", to, subject, html)
            logger.info(f"Queued {kind} email to {to}")
            return True
        except Exception as e:
            logger.warning(f"Failed to queue {kind} email to {to}: {str(e)}")
            return False

    def send_status_update(
        self, to: str, applicant_name: str, status: ApplicationStatus
    ) -> bool:
        return self._enqueue(
            to,
            self.status_update_subject(status),
            self.status_update_html(applicant_name, status),
            f"status update ({status.value})",
        )

    def send_document_verification(
        self, to: str, applicant_name: str, document_name: str, outcome: str
    ) -> bool:
        """``outcome`` is ``verified`` or ``invalid``"""
        return self._enqueue(
            to,
            self.document_verification_subject(document_name, outcome),
            self.document_verification_html(applicant_name, document_name, outcome),
            f"document {outcome}",
        )
