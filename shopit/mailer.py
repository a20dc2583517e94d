import logging
import smtplib
from email.message import EmailMessage
from importlib import resources
from string import Template

from .errors import UpstreamError

logger = logging.getLogger(__name__)


def render_template(name: str, data: dict) -> tuple:
    """Returns (html, plain) bodies for templates/<name>.html and .txt."""
    folder = resources.files("shopit") / "templates"
    html = Template((folder / f"{name}.html").read_text(encoding="utf-8")).substitute(data)
    plain = Template((folder / f"{name}.txt").read_text(encoding="utf-8")).substitute(data)
    return html, plain


class SMTPMailer:
    def __init__(self, host: str, port: int, username: str = "", password: str = "", timeout: float = 10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

    def send_mail(self, sender: str, to: str, subject: str, template: str, data: dict) -> None:
        html, plain = render_template(template, data)

        message = EmailMessage()
        message["From"] = sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(plain)
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise UpstreamError(f"error sending mail: {e}") from e
        logger.info("Sent %s mail to %s", template, to)
