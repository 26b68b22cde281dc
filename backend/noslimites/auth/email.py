"""Email sending utilities for magic link authentication."""
import logging

import resend

from ..config import EMAIL_PROVIDER, RESEND_API_KEY, EMAIL_FROM, MAGIC_LINK_TTL_MINUTES

logger = logging.getLogger(__name__)

MAGIC_LINK_SUBJECT = "Votre lien de connexion - Nos limites"


def build_magic_link_text(magic_link_url: str, expires_in_minutes: int) -> str:
    return "\n".join([
        "Nos limites - Votre lien de connexion",
        "",
        "Vous avez demandé un lien magique pour vous connecter à Nos limites.",
        "Cliquez sur le lien ci-dessous pour accéder à votre compte :",
        "",
        magic_link_url,
        "",
        f"Ce lien est valable {expires_in_minutes} minutes et ne peut être utilisé qu'une seule fois.",
        "",
        "Si vous n'êtes pas à l'origine de cette demande, vous pouvez ignorer cet email.",
    ])


def build_magic_link_html(magic_link_url: str, expires_in_minutes: int) -> str:
    return f"""<!DOCTYPE html>
<html lang="fr">
<head><meta charset="UTF-8"><title>{MAGIC_LINK_SUBJECT}</title></head>
<body style="font-family: 'Segoe UI', Tahoma, sans-serif; background-color: #FAFAF9;">
  <h1 style="color: #7C3AED;">Nos limites</h1>
  <p>Vous avez demand&eacute; un lien magique pour vous connecter &agrave; <strong>Nos limites</strong>.</p>
  <p><a href="{magic_link_url}" style="background: #7C3AED; color: #FFFFFF; padding: 12px 32px; border-radius: 12px; text-decoration: none;">Se connecter</a></p>
  <p>Ce lien est valable <strong>{expires_in_minutes} minutes</strong> et ne peut &ecirc;tre utilis&eacute; qu'une seule fois.</p>
  <p style="color: #A8A29E; font-size: 12px;">Si le bouton ne fonctionne pas, copiez ce lien&nbsp;: {magic_link_url}</p>
</body>
</html>"""


class ConsoleEmailProvider:
    """Development fallback: prints the link instead of sending mail."""

    def send_magic_link(self, to_email: str, magic_link_url: str, expires_in_minutes: int = MAGIC_LINK_TTL_MINUTES) -> None:
        logger.info("MAGIC LINK (console mode) for %s: %s (expires in %s minutes)", to_email, magic_link_url, expires_in_minutes)


class ResendEmailProvider:
    def __init__(self, api_key: str = RESEND_API_KEY, sender: str = EMAIL_FROM):
        if not api_key:
            raise RuntimeError("RESEND_API_KEY is required when EMAIL_PROVIDER=resend.")
        resend.api_key = api_key
        self.sender = sender

    def send_magic_link(self, to_email: str, magic_link_url: str, expires_in_minutes: int = MAGIC_LINK_TTL_MINUTES) -> None:
        payload = {
            "from": self.sender,
            "to": to_email,
            "subject": MAGIC_LINK_SUBJECT,
            "html": build_magic_link_html(magic_link_url, expires_in_minutes),
            "text": build_magic_link_text(magic_link_url, expires_in_minutes),
        }
        try:
            response = resend.Emails.send(payload)
        except Exception as e:
            logger.error(f"Failed to send magic link email to {to_email}: {e}")
            raise
        logger.info(f"Magic link email sent to {to_email} via Resend (id={response.get('id')})")


def create_email_provider(provider: str = EMAIL_PROVIDER):
    if provider == "resend":
        return ResendEmailProvider()
    if provider != "console":
        logger.warning(f'Unknown EMAIL_PROVIDER "{provider}", falling back to console.')
    return ConsoleEmailProvider()


_provider = None


def get_email_provider():
    """Dependency returning the process-wide email provider."""
    global _provider
    if _provider is None:
        _provider = create_email_provider()
    return _provider
