"""
Email Service using Resend for TCW1
Handles account, security and transaction notification emails
"""

import os
import asyncio
import logging
from datetime import datetime, timezone
import resend

logger = logging.getLogger(__name__)

_TEXT = 'color: #a1a1aa; line-height: 1.6;'
_NOTE = 'color: #71717a; font-size: 14px;'


def _page(heading: str, body: str, heading_color: str = "#ffffff") -> str:
    """Wrap template body in the branded TCW1 layout"""
    return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #09090b; color: #ffffff;">
            <div style="text-align: center; padding: 20px 0; border-bottom: 1px solid #27272a;">
                <h1 style="color: #10b981; margin: 0;">TCW1</h1>
            </div>
            <div style="padding: 30px 20px;">
                <h2 style="color: {heading_color}; margin-bottom: 20px;">{heading}</h2>
                {body}
            </div>
            <div style="text-align: center; padding: 20px; border-top: 1px solid #27272a; color: #71717a; font-size: 12px;">
                &copy; 2025 TCW1. All rights reserved.
            </div>
        </div>
"""


def _button(url: str, label: str, color: str = "#10b981") -> str:
    return (
        f'<a href="{url}" style="display: inline-block; padding: 15px 30px; margin: 0 5px; '
        f'background-color: {color}; color: #ffffff; text-decoration: none; '
        f'border-radius: 8px; font-weight: bold;">{label}</a>'
    )


def _buttons(*buttons: str) -> str:
    return f'<div style="text-align: center; margin: 30px 0;">{"".join(buttons)}</div>'


def _details(rows) -> str:
    lines = "".join(
        f'<p style="color: #ffffff; margin: 5px 0;"><strong>{label}:</strong> {value}</p>'
        for label, value in rows
    )
    return f'<div style="background-color: #18181b; border-radius: 8px; padding: 20px; margin: 20px 0;">{lines}</div>'


# Email Templates
EMAIL_TEMPLATES = {
    "welcome": {
        "subject": "Welcome to TCW1!",
        "enabled": True,
        "html": _page(
            "Welcome, {{name}}!",
            f'<p style="{_TEXT}">Your account has been created. You can now request wallets, trade, '
            f'shop the catalog and list items on the marketplace.</p>'
            + _buttons(_button("{{login_url}}", "Sign In"))
        ),
    },
    "transaction": {
        "subject": "Transaction {{status}}: {{amount}} {{currency}}",
        "enabled": True,
        "html": _page(
            "Transaction {{status}}",
            f'<p style="{_TEXT}">Hi {{{{name}}}},</p>'
            + _details([
                ("Type", "{{type}}"),
                ("Amount", "{{amount}} {{currency}}"),
                ("Hash", "{{transaction_hash}}"),
            ])
        ),
    },
    "two_factor_enabled": {
        "subject": "Two-factor authentication enabled",
        "enabled": True,
        "html": _page(
            "Two-factor authentication is on",
            f'<p style="{_TEXT}">Hi {{{{name}}}}, two-factor authentication was enabled on your account. '
            f'Keep your backup codes somewhere safe.</p>'
            f'<p style="{_NOTE}">If this wasn\'t you, reset your password immediately.</p>',
            heading_color="#10b981"
        ),
    },
    "two_factor_disabled": {
        "subject": "Two-factor authentication disabled",
        "enabled": True,
        "html": _page(
            "Two-factor authentication is off",
            f'<p style="{_TEXT}">Hi {{{{name}}}}, two-factor authentication was disabled on your account.</p>'
            f'<p style="{_NOTE}">If this wasn\'t you, reset your password and re-enable 2FA immediately.</p>',
            heading_color="#fbbf24"
        ),
    },
    "password_changed": {
        "subject": "Your password was changed",
        "enabled": True,
        "html": _page(
            "Password changed",
            f'<p style="{_TEXT}">Hi {{{{name}}}}, the password for your account was changed on {{{{changed_at}}}}.</p>'
            f'<p style="{_NOTE}">If this wasn\'t you, contact support right away.</p>'
        ),
    },
    "password_reset": {
        "subject": "Reset your TCW1 password",
        "enabled": True,
        "html": _page(
            "Password reset requested",
            f'<p style="{_TEXT}">Hi {{{{name}}}}, use the link below to choose a new password. '
            f'It expires in 24 hours.</p>'
            + _buttons(_button("{{reset_url}}", "Reset Password", "#8b5cf6"))
            + f'<p style="{_NOTE}">If you didn\'t request this, you can ignore this email.</p>'
        ),
    },
    "login_notification": {
        "subject": "New sign-in to your account",
        "enabled": True,
        "html": _page(
            "New sign-in",
            f'<p style="{_TEXT}">Hi {{{{name}}}}, we noticed a new sign-in.</p>'
            + _details([
                ("Time", "{{login_at}}"),
                ("IP address", "{{ip_address}}"),
                ("Device", "{{user_agent}}"),
            ])
        ),
    },
    "login_approval": {
        "subject": "Approve sign-in from {{device_name}}",
        "enabled": True,
        "html": _page(
            "Was this you?",
            f'<p style="{_TEXT}">Hi {{{{name}}}}, someone is trying to sign in from {{{{device_name}}}} '
            f'({{{{ip_address}}}}). This request expires on {{{{expires_at}}}}.</p>'
            + _buttons(
                _button("{{approve_url}}", "Approve"),
                _button("{{reject_url}}", "Reject", "#ef4444"),
            ),
            heading_color="#fbbf24"
        ),
    },
}


def _display_name(user: dict) -> str:
    name = " ".join(p for p in [user.get("first_name"), user.get("last_name")] if p)
    return name or user.get("email", "").split("@")[0]


class EmailService:
    """Email service using Resend"""

    def __init__(self, db):
        self.db = db
        self.api_key = None
        self.sender_email = None
        self.base_url = os.environ.get("APP_BASE_URL", "http://localhost:3000")

    async def initialize(self):
        """Load email settings from database, falling back to env"""
        try:
            settings = await self.db.admin_settings.find_one({"type": "email_settings"}, {"_id": 0})
        except Exception as e:
            logger.warning(f"Could not load email settings, using env: {e}")
            settings = None
        if settings:
            self.api_key = settings.get("resend_api_key")
            self.sender_email = settings.get("sender_email")

        # Fallback to env
        if not self.api_key:
            self.api_key = os.environ.get("RESEND_API_KEY")

        if not self.sender_email:
            self.sender_email = os.environ.get("SENDER_EMAIL", "onboarding@resend.dev")

        if self.api_key:
            resend.api_key = self.api_key
            return True
        return False

    def _replace_variables(self, template: str, variables: dict) -> str:
        """Replace template variables"""
        result = template
        for key, value in variables.items():
            result = result.replace(f"{{{{{key}}}}}", str(value))
        return result

    async def _log(self, entry: dict):
        entry["sent_at"] = datetime.now(timezone.utc).isoformat()
        try:
            await self.db.email_logs.insert_one(entry)
        except Exception as e:
            logger.error(f"Failed to write email log for {entry.get('to')}: {e}")

    async def send_email(self, to_email: str, template_name: str, variables: dict) -> dict:
        """Send email using a template. Never raises."""
        if not await self.initialize():
            logger.warning("Email service not configured - skipping email")
            return {"status": "skipped", "reason": "Email service not configured"}

        template = EMAIL_TEMPLATES.get(template_name)
        if not template:
            return {"status": "error", "reason": f"Template '{template_name}' not found"}

        if not template.get("enabled", True):
            return {"status": "skipped", "reason": "Template disabled"}

        variables.setdefault("login_url", f"{self.base_url}/login")

        subject = self._replace_variables(template["subject"], variables)
        html = self._replace_variables(template["html"], variables)

        params = {
            "from": self.sender_email,
            "to": [to_email],
            "subject": subject,
            "html": html
        }
        log_entry = {"to": to_email, "template": template_name, "subject": subject}

        try:
            email_result = await asyncio.to_thread(resend.Emails.send, params)
        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            await self._log({**log_entry, "status": "failed", "error": str(e)})
            return {"status": "error", "reason": str(e)}

        await self._log({**log_entry, "status": "sent", "email_id": email_result.get("id")})
        return {"status": "success", "email_id": email_result.get("id")}

    async def send_welcome_email(self, user: dict):
        return await self.send_email(user["email"], "welcome", {"name": _display_name(user)})

    async def send_transaction_email(self, user: dict, transaction: dict):
        """Send transaction status notification"""
        variables = {
            "name": _display_name(user),
            "status": transaction.get("status", "pending"),
            "type": transaction.get("type", "trade"),
            "amount": transaction.get("amount"),
            "currency": transaction.get("currency"),
            "transaction_hash": transaction.get("transaction_hash", "N/A"),
        }
        return await self.send_email(user["email"], "transaction", variables)

    async def send_two_factor_enabled_email(self, user: dict):
        return await self.send_email(user["email"], "two_factor_enabled", {"name": _display_name(user)})

    async def send_two_factor_disabled_email(self, user: dict):
        return await self.send_email(user["email"], "two_factor_disabled", {"name": _display_name(user)})

    async def send_password_changed_email(self, user: dict):
        variables = {
            "name": _display_name(user),
            "changed_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        }
        return await self.send_email(user["email"], "password_changed", variables)

    async def send_password_reset_email(self, user: dict, reset_token: str):
        variables = {
            "name": _display_name(user),
            "reset_url": f"{self.base_url}/reset-password?token={reset_token}",
        }
        return await self.send_email(user["email"], "password_reset", variables)

    async def send_login_notification_email(self, user: dict, ip_address: str = None, user_agent: str = None):
        variables = {
            "name": _display_name(user),
            "login_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
            "ip_address": ip_address or "unknown",
            "user_agent": user_agent or "unknown",
        }
        return await self.send_email(user["email"], "login_notification", variables)

    async def send_login_approval_email(self, user: dict, approval: dict):
        """Send the approve/reject links for a pending sign-in"""
        token = approval["approval_token"]
        variables = {
            "name": _display_name(user),
            "device_name": approval.get("device_name") or "an unknown device",
            "ip_address": approval.get("ip_address") or "unknown",
            "expires_at": approval.get("expires_at"),
            "approve_url": f"{self.base_url}/login-approval/approve/{token}",
            "reject_url": f"{self.base_url}/login-approval/reject/{token}",
        }
        return await self.send_email(user["email"], "login_approval", variables)
