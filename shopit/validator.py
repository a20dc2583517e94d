import re
from typing import Dict

from .errors import ValidationFailed

EMAIL_RX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class Validator:
    """Collects field -> message errors; the first message per field wins."""

    def __init__(self):
        self.errors: Dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def check_email(self, email: str, key: str, message: str) -> None:
        self.check(bool(email) and EMAIL_RX.match(email) is not None, key, message)

    def raise_if_invalid(self) -> None:
        if not self.valid():
            raise ValidationFailed(dict(self.errors))
