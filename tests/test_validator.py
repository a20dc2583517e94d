import pytest

from shopit.errors import ValidationFailed
from shopit.validator import Validator


def test_first_error_per_field_wins():
    v = Validator()
    v.check(False, "name", "first")
    v.check(False, "name", "second")
    v.check(True, "email", "never")

    assert v.errors == {"name": "first"}
    assert not v.valid()


@pytest.mark.parametrize(
    "email, ok",
    [
        ("jane@example.com", True),
        ("jane.doe+shop@mail.example.co", True),
        ("jane@", False),
        ("@example.com", False),
        ("jane example.com", False),
        ("", False),
    ],
)
def test_check_email(email, ok):
    v = Validator()
    v.check_email(email, "email", "email must be valid")
    assert v.valid() is ok


def test_raise_if_invalid_carries_errors():
    v = Validator()
    v.raise_if_invalid()

    v.add_error("price", "price must be provided")
    with pytest.raises(ValidationFailed) as exc:
        v.raise_if_invalid()
    assert exc.value.errors == {"price": "price must be provided"}
    assert exc.value.status_code == 422
