"""
services/errors.py
------------------
Exceptions raised by the service layer.
"""


class ForgetPasswordException(Exception):
    """A lost-password request cannot be honoured (bad or expired token, external account)."""


class PasswordTooWeakException(Exception):
    """The new password does not satisfy the password policy."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors
