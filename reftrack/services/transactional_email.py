"""
Transactional email service - SendGrid-based payout notifications to affiliates.

Best-effort: a failed send is logged and reported in the return value, never
raised, so payout bookkeeping is not rolled back because an email bounced.
"""
import asyncio
import logging
from html import escape

from reftrack.config import get_settings
from reftrack.utils.logging import mask_email

logger = logging.getLogger(__name__)


async def _send_transactional(
    to_email: str,
    subject: str,
    html_content: str,
    text_content: str,
) -> dict:
    """
    Send a transactional email via SendGrid.

    Returns: {"message_id": str|None, "status": str, "error": str|None}
    """
    settings = get_settings()
    api_key = settings.sendgrid_api_key
    from_email = settings.from_email_transactional or "noreply@reftrack.io"
    from_name = settings.from_name_transactional or "Reftrack"

    if not api_key:
        logger.warning("No SendGrid API key configured, skipping email to %s", mask_email(to_email))
        return {"message_id": None, "status": "skipped", "error": "SendGrid not configured"}

    try:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail, Email, To, Content

        message = Mail(
            from_email=Email(from_email, from_name),
            to_emails=To(to_email),
            subject=subject,
        )
        message.content = [
            Content("text/plain", text_content),
            Content("text/html", html_content),
        ]

        sg = SendGridAPIClient(api_key=api_key)
        # SendGrid SDK is synchronous
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, lambda: sg.send(message))
        message_id = response.headers.get("X-Message-Id", "")

        logger.info("Transactional email sent: to=%s subject=%s", mask_email(to_email), subject[:40])
        return {"message_id": message_id, "status": "sent", "error": None}

    except Exception as e:
        logger.error("Transactional email failed: to=%s error=%s", mask_email(to_email), str(e))
        return {"message_id": None, "status": "error", "error": str(e)}


def format_cents(amount_cents: int, currency: str = "USD") -> str:
    symbol = "$" if currency.upper() == "USD" else f"{currency.upper()} "
    return f"{symbol}{amount_cents // 100:,}.{amount_cents % 100:02d}"


def _layout(title: str, body_html: str) -> str:
    return f"""
    <div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 480px; margin: 0 auto; padding: 40px 20px;">
      <h2 style="margin: 0 0 24px; color: #111; font-size: 20px;">{title}</h2>
      {body_html}
      <hr style="border: none; border-top: 1px solid #eee; margin: 32px 0;" />
      <p style="color: #bbb; font-size: 11px; text-align: center;">Reftrack affiliate program</p>
    </div>
    """


async def send_payout_created_email(
    email: str,
    name: str,
    amount_cents: int,
    commission_count: int,
    method: str,
) -> dict:
    """Tell the affiliate a payout has been scheduled."""
    amount = format_cents(amount_cents)
    html = _layout("Payout scheduled", f"""
      <p style="color: #555; font-size: 15px; line-height: 1.6;">Hi {escape(name)},</p>
      <p style="color: #555; font-size: 15px; line-height: 1.6;">
        A payout of <strong>{amount}</strong> covering {commission_count} commission(s)
        has been scheduled via {escape(method)}. We'll email you again once it has been sent.
      </p>
    """)
    text = (
        f"Hi {name},\n\n"
        f"A payout of {amount} covering {commission_count} commission(s) has been "
        f"scheduled via {method}. We'll email you again once it has been sent.\n\n"
        "-- Reftrack"
    )
    return await _send_transactional(email, f"Your {amount} payout is scheduled", html, text)


async def send_payout_completed_email(
    email: str,
    name: str,
    amount_cents: int,
    method: str,
) -> dict:
    """Tell the affiliate their payout has been sent."""
    amount = format_cents(amount_cents)
    html = _layout("Payout sent", f"""
      <p style="color: #555; font-size: 15px; line-height: 1.6;">Hi {escape(name)},</p>
      <p style="color: #555; font-size: 15px; line-height: 1.6;">
        Your payout of <strong>{amount}</strong> has been sent via {escape(method)}.
        Thanks for partnering with us.
      </p>
    """)
    text = (
        f"Hi {name},\n\n"
        f"Your payout of {amount} has been sent via {method}. "
        "Thanks for partnering with us.\n\n"
        "-- Reftrack"
    )
    return await _send_transactional(email, f"Your {amount} payout has been sent", html, text)
