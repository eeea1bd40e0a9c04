"""
Outgoing mail for verification codes.
"""
import logging
import secrets
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from ..config import settings

logger = logging.getLogger(__name__)

CODE_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f9f9f9; }}
    .content {{ background-color: #ffffff; padding: 30px; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }}
    .code {{ font-size: 32px; font-weight: bold; color: #ff5722; letter-spacing: 4px; text-align: center; padding: 20px; background-color: #f5f5f5; border-radius: 4px; margin: 20px 0; }}
    .footer {{ margin-top: 20px; padding-top: 20px; border-top: 1px solid #eee; color: #999; font-size: 12px; }}
</style>
</head>
<body>
<div class="container">
    <div class="content">
        <h2 style="color: #333; margin-top: 0;">验证码通知</h2>
        <p>您好！</p>
        <p>请使用以下验证码完成验证：</p>
        <div class="code">{code}</div>
        <p><strong>重要提示：</strong></p>
        <ul>
            <li>验证码有效期为 <strong>{minutes}分钟</strong></li>
            <li>请勿将验证码透露给他人</li>
            <li>如非本人操作，请忽略此邮件</li>
        </ul>
        <div class="footer">
            <p>此邮件由系统自动发送，请勿回复。</p>
        </div>
    </div>
</div>
</body>
</html>
"""


class MailError(Exception):
    """Raised when a message could not be delivered"""


def generate_numeric_code(length: int = 6) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def render_code_email(code: str) -> str:
    minutes = max(1, settings.EMAIL_CODE_EXPIRE_SECONDS // 60)
    return CODE_EMAIL_TEMPLATE.format(code=code, minutes=minutes)


def send_email(to: str, subject: str, html_body: str) -> None:
    """
    Send an HTML email over SMTP with STARTTLS.

    Without SMTP credentials the message is only written to the log, which
    is how local and dev deployments receive their codes.

    Raises:
        MailError: the SMTP exchange failed
    """
    subject = subject or settings.MAIL_SUBJECT
    if not settings.SMTP_USERNAME:
        logger.info("[DEV] Email to %s (subject=%s) not sent, SMTP is not configured", to, subject)
        return

    message = EmailMessage()
    message["From"] = formataddr((settings.SMTP_SENDER_NAME, settings.SMTP_USERNAME))
    message["To"] = to
    message["Subject"] = subject
    message.set_content("This message requires an HTML capable mail client.")
    message.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as smtp:
            smtp.starttls()
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("[SendEmail] Failed to send email to %s: %s", to, e)
        raise MailError(str(e)) from e

    logger.info("[SendEmail] Email sent to %s", to)


def send_code_email(to: str, code: str) -> None:
    if not settings.SMTP_USERNAME:
        logger.info("[DEV] Verification code for %s: %s", to, code)
    send_email(to, settings.MAIL_SUBJECT, render_code_email(code))
