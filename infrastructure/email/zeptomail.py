"""ZeptoMail implementation of EmailProvider.

Messages are rendered from the Jinja2 templates in templates/emails and sent
through ZeptoMail's JSON API. Transport failures are logged and reported as
``False``; nothing here raises into the caller.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

ZEPTO_API_BASE = "https://api.zeptomail.in"
_ZEPTO_SEND_PATH = "/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


def _greeting(user_name: Optional[str]) -> str:
    return f"Hello{f' {user_name}' if user_name else ''},"


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        *,
        app_name: str = "Auth Service",
        app_url: str = "http://localhost:8000",
        reset_password_url: str = "",
        otp_expiry_minutes: int = 10,
        reset_expiry_minutes: int = 15,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._app_url = app_url.rstrip("/")
        self._reset_password_url = reset_password_url or f"{self._app_url}/reset-password"
        self._otp_expiry_minutes = otp_expiry_minutes
        self._reset_expiry_minutes = reset_expiry_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _render(self, template_name: str, **context) -> str:
        template = self._jinja.get_template(template_name)
        return template.render(app_name=self._app_name, app_url=self._app_url, **context)

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        template_name: str,
        context: dict,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="api_key_not_configured")
            return False

        try:
            html_body = self._render(template_name, **context)
        except Exception as e:
            log.error(
                "email_render_error",
                to_email=to_email,
                template=template_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        api_key = self._settings.zepto_api_token
        if not api_key.startswith("Zoho-enczapikey "):
            api_key = f"Zoho-enczapikey {api_key}"

        try:
            response = await self._http.post_json(
                _ZEPTO_SEND_PATH, payload, headers={"Authorization": api_key}
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", to_email=to_email, subject=subject)
                return True
            log.error(
                "email_sent_failed",
                to_email=to_email,
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    def reset_link(self, reset_token: str) -> str:
        return f"{self._reset_password_url}?token={reset_token}"

    async def send_verification_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool:
        subject = f"Verify your email - {self._app_name}"
        context = {
            "otp_code": otp_code,
            "user_name": user_name,
            "expiry_minutes": self._otp_expiry_minutes,
        }
        text_body = (
            f"Verify Your Email - {self._app_name}\n\n"
            f"{_greeting(user_name)}\n\n"
            f"Your verification code is: {otp_code}\n\n"
            f"This code expires in {self._otp_expiry_minutes} minutes."
        )
        return await self._send(
            email, user_name, subject, "verification.html", context, text_body
        )

    async def send_welcome_email(self, email: str, user_name: Optional[str]) -> bool:
        subject = f"Welcome to {self._app_name}!"
        context = {"user_name": user_name}
        text_body = (
            f"Welcome to {self._app_name}{f', {user_name}' if user_name else ''}!\n\n"
            f"Your email address is verified and your account is ready.\n\n"
            f"Sign in: {self._app_url}"
        )
        return await self._send(
            email, user_name, subject, "welcome.html", context, text_body
        )

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_token: str
    ) -> bool:
        subject = f"Reset your password - {self._app_name}"
        reset_url = self.reset_link(reset_token)
        context = {
            "reset_url": reset_url,
            "user_name": user_name,
            "expiry_minutes": self._reset_expiry_minutes,
        }
        text_body = (
            f"Reset Your Password - {self._app_name}\n\n"
            f"{_greeting(user_name)}\n\n"
            f"Open this link to choose a new password:\n{reset_url}\n\n"
            f"The link expires in {self._reset_expiry_minutes} minutes. "
            f"If you did not ask for a reset, ignore this email."
        )
        return await self._send(
            email, user_name, subject, "password_reset.html", context, text_body
        )

    async def send_password_changed_email(
        self, email: str, user_name: Optional[str]
    ) -> bool:
        subject = f"Your password was changed - {self._app_name}"
        context = {"user_name": user_name}
        text_body = (
            f"Password Changed - {self._app_name}\n\n"
            f"{_greeting(user_name)}\n\n"
            f"The password for your account was just changed.\n\n"
            f"If this wasn't you, reset your password immediately."
        )
        return await self._send(
            email, user_name, subject, "password_changed.html", context, text_body
        )
