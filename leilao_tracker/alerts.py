"""
Summary notifier for the Leilão Tracker.

Sends one e-mail per run with the top-N opportunities (by score) via SMTP.
A failed delivery is logged and never fails the run.
"""

import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import date
from html import escape
from typing import Optional

from .config import EmailConfig, get_email_config
from .models import Property

logger = logging.getLogger(__name__)


# =============================================================================
# EMAIL TEMPLATES
# =============================================================================

SUMMARY_SUBJECT = "🏠 Leilões {day}: {count} oportunidades, {new_count} novas"

SUMMARY_HTML = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.5; color: #333; }}
        .container {{ max-width: 640px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #238636; color: white; padding: 16px; text-align: center; }}
        .card {{ background: #f6f8fa; border-radius: 6px; padding: 14px; margin: 12px 0; }}
        .score {{ font-size: 20px; font-weight: bold; color: #238636; }}
        .new {{ background: #d29922; color: #000; padding: 2px 6px; border-radius: 4px; font-size: 12px; }}
        .alert {{ color: #b35900; font-size: 13px; }}
        .breakdown {{ color: #666; font-size: 12px; }}
        .footer {{ text-align: center; padding: 16px; color: #718096; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>Leilões Curitiba - {day}</h1>
        </div>
        {cards}
        <div class="footer">
            <p>Filtros: Curitiba + Grande Curitiba | Desconto &gt;{min_discount:.0f}% | Preço &lt;R${max_price}</p>
        </div>
    </div>
</body>
</html>
"""

CARD_HTML = """
        <div class="card">
            <span class="score">{score}/100</span> {new_tag}
            <h3>{tipo} - {bairro}</h3>
            <p>{lance} ({desconto}) | {preco_m2} | Real: {desconto_real}</p>
            <p class="breakdown">{breakdown}</p>
            {alertas}
            <a href="{link}">Ver imóvel →</a>
        </div>
"""

CARD_TEXT = """
⭐ {score}/100 - {tipo} - {bairro}{new_tag}
   {lance} ({desconto}) | {preco_m2} | Real: {desconto_real}
   {breakdown}
   {alertas}
   {link}
"""


def format_brl(value: float) -> str:
    """R$ with Brazilian thousands separators, no cents."""
    return "R$" + f"{value:,.0f}".replace(",", ".")


def _card_vars(record: Property) -> dict:
    return {
        "score": record.score if record.score is not None else "?",
        "tipo": record.tipo,
        "bairro": record.bairro,
        "lance": format_brl(record.lance),
        "desconto": f"{record.desconto:.0f}% off" if record.desconto is not None else "desconto ?",
        "preco_m2": f"R${record.preco_m2}/m²" if record.preco_m2 is not None else "R$/m² n/a",
        "desconto_real": f"{record.desconto_real}%" if record.desconto_real is not None else "?",
        "breakdown": record.score_breakdown or "",
        "link": record.link,
    }


# =============================================================================
# NOTIFIER CLASS
# =============================================================================

class SummaryNotifier:
    """
    E-mails the best opportunities of a run.

    Usage:
        notifier = SummaryNotifier()
        notifier.send_summary(top_records, day=date.today())
    """

    def __init__(self, email_config: Optional[EmailConfig] = None):
        self.email_config = email_config or get_email_config()

    def build_message(
        self,
        records: list[Property],
        day: date,
        min_discount: float = 40.0,
        max_price: float = 800000.0,
    ) -> MIMEMultipart:
        """Build the multipart (text + HTML) summary message."""
        new_count = sum(1 for r in records if r.novo)

        text_cards = []
        html_cards = []
        for record in records:
            card = _card_vars(record)
            text_cards.append(CARD_TEXT.format(
                **card,
                new_tag=" 🆕" if record.novo else "",
                alertas=" | ".join(record.alertas),
            ))
            html_card = {k: escape(str(v)) for k, v in card.items()}
            html_cards.append(CARD_HTML.format(
                **html_card,
                new_tag='<span class="new">NOVO</span>' if record.novo else "",
                alertas="".join(f'<p class="alert">{escape(a)}</p>' for a in record.alertas),
            ))

        msg = MIMEMultipart("alternative")
        msg["Subject"] = SUMMARY_SUBJECT.format(day=day.strftime("%d/%m/%Y"), count=len(records), new_count=new_count)
        msg["From"] = f"{self.email_config.from_name} <{self.email_config.from_email}>"
        msg["To"] = self.email_config.to_email

        msg.attach(MIMEText("".join(text_cards), "plain", "utf-8"))
        msg.attach(MIMEText(
            SUMMARY_HTML.format(
                day=day.strftime("%d/%m/%Y"),
                cards="".join(html_cards),
                min_discount=min_discount,
                max_price=format_brl(max_price).replace("R$", ""),
            ),
            "html",
            "utf-8",
        ))
        return msg

    def send_summary(self, records: list[Property], day: Optional[date] = None, **filters) -> bool:
        """
        Send the summary e-mail.

        Returns:
            True if sent, False if disabled, empty, or delivery failed
        """
        if not self.email_config.enabled:
            logger.info("Notification disabled (SMTP_USER / NOTIFY_TO not set)")
            return False
        if not records:
            logger.info("No opportunities to notify")
            return False

        msg = self.build_message(records, day or date.today(), **filters)
        try:
            self._send_via_smtp(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send summary: {e}")
            return False

        logger.info(f"Sent summary with {len(records)} properties to {self.email_config.to_email}")
        return True

    def _send_via_smtp(self, msg: MIMEMultipart) -> None:
        """Send email via SMTP."""
        with smtplib.SMTP(self.email_config.smtp_host, self.email_config.smtp_port) as server:
            server.starttls()
            if self.email_config.smtp_user and self.email_config.smtp_password:
                server.login(self.email_config.smtp_user, self.email_config.smtp_password)
            server.send_message(msg)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def send_summary(records: list[Property], day: Optional[date] = None, **filters) -> bool:
    """
    Convenience function to send the summary e-mail.

    Args:
        records: Ranked properties to include
        day: Run date shown in the subject

    Returns:
        True if the e-mail was sent
    """
    return SummaryNotifier().send_summary(records, day, **filters)
