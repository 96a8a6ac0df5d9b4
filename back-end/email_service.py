import html
import os

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY")
INVITE_FROM_EMAIL = os.environ.get("INVITE_FROM_EMAIL", "noreply@listor.eu")
INVITE_FROM_NAME = os.environ.get("INVITE_FROM_NAME", "Listor")

PERMISSION_BLURB = {
    "view": "You can view tasks and track progress.",
    "edit": "You can view, add, edit, and complete tasks.",
}


def invitation_subject(inviter_name, list_title):
    return f'{inviter_name} invited you to collaborate on "{list_title}"'


def invitation_text(inviter_name, list_title, permission, invitation_url):
    return (
        "You've been invited to collaborate on Listor!\n\n"
        f'{inviter_name} has invited you to collaborate on their task list: "{list_title}"\n\n'
        f"Permission level: {permission.upper()}\n"
        f"{PERMISSION_BLURB.get(permission, '')}\n\n"
        "To accept the invitation, click this link:\n"
        f"{invitation_url}\n\n"
        "If you didn't expect this invitation, you can safely ignore this email.\n\n"
        "---\nThis invitation was sent via Listor\n"
    )


def invitation_html(inviter_name, list_title, permission, invitation_url):
    inviter = html.escape(inviter_name)
    title = html.escape(list_title)
    url = html.escape(invitation_url, quote=True)
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Task List Invitation</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background-color: #f5f5f5;">
  <div style="max-width: 600px; margin: 0 auto; background-color: white; padding: 40px; border-radius: 8px;">
    <h1 style="color: #2563eb;">You've been invited to collaborate!</h1>
    <p><strong>{inviter}</strong> has invited you to collaborate on their task list.</p>
    <div style="background-color: #f8fafc; padding: 20px; border-radius: 6px;">
      <h3>{title}</h3>
      <p>Permission level: <strong>{html.escape(permission.upper())}</strong></p>
      <p>{PERMISSION_BLURB.get(permission, '')}</p>
    </div>
    <p style="text-align: center;">
      <a href="{url}" style="background-color: #2563eb; color: white; padding: 12px 24px; border-radius: 6px; text-decoration: none;">Accept Invitation</a>
    </p>
    <p><small>If the button doesn't work, copy and paste this link into your browser:<br>
    <a href="{url}">{url}</a></small></p>
    <p style="color: #6b7280; font-size: 14px;">This invitation was sent by {inviter} via Listor.
    If you didn't expect this invitation, you can safely ignore this email.</p>
  </div>
</body>
</html>"""


class InvitationMailer:
    """Sends invitation emails through SendGrid.

    ``send_invitation`` never raises; it reports the outcome as
    ``{"success": bool, "messageId": str | None, "error": str | None}``.
    """

    def __init__(self, api_key=None, from_email=None, from_name=None, client=None):
        self.api_key = api_key if api_key is not None else SENDGRID_API_KEY
        self.from_email = from_email or INVITE_FROM_EMAIL
        self.from_name = from_name or INVITE_FROM_NAME
        self._client = client

    @property
    def client(self):
        if self._client is None and self.api_key:
            self._client = SendGridAPIClient(self.api_key)
        return self._client

    def build_message(self, invitee_email, inviter_name, list_title, permission, invitation_url):
        return Mail(
            from_email=(self.from_email, self.from_name),
            to_emails=invitee_email,
            subject=invitation_subject(inviter_name, list_title),
            html_content=invitation_html(inviter_name, list_title, permission, invitation_url),
            plain_text_content=invitation_text(inviter_name, list_title, permission, invitation_url),
        )

    def send_invitation(self, invitee_email, inviter_name, list_title, permission, invitation_url):
        if self.client is None:
            print(f"[email_service.send_invitation] SENDGRID_API_KEY not set, skipping mail to {invitee_email}")
            return {"success": False, "messageId": None, "error": "Email delivery is not configured"}
        message = self.build_message(invitee_email, inviter_name, list_title, permission, invitation_url)
        try:
            response = self.client.send(message)
        except Exception as e:
            print(f"[email_service.send_invitation] send to {invitee_email} failed: {e}")
            return {"success": False, "messageId": None, "error": str(e) or "Failed to send email"}
        if response.status_code >= 400:
            print(f"[email_service.send_invitation] provider returned {response.status_code}")
            return {"success": False, "messageId": None, "error": f"Email provider returned {response.status_code}"}
        message_id = (response.headers or {}).get("X-Message-Id")
        print(f"[email_service.send_invitation] sent to {invitee_email} status={response.status_code}")
        return {"success": True, "messageId": message_id, "error": None}
