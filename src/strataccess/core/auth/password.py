"""Password hashing with bcrypt and the account password policy."""

import re
from collections.abc import Callable
from enum import Enum

import bcrypt

from strataccess.core.outcomes import PolicyViolation

MIN_PASSWORD_LENGTH = 8
PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'

_SYMBOL_PATTERN = re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]")


class PasswordRule(str, Enum):
    """Individual clauses of the password policy."""

    MIN_LENGTH = "min_length"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    DIGIT = "digit"
    SYMBOL = "symbol"
    DIFFERS_FROM_CURRENT = "differs_from_current"

    @property
    def description(self) -> str:
        """Message shown next to the clause in the UI."""
        return _RULE_DESCRIPTIONS[self]


_RULE_DESCRIPTIONS: dict[PasswordRule, str] = {
    PasswordRule.MIN_LENGTH: f"At least {MIN_PASSWORD_LENGTH} characters",
    PasswordRule.UPPERCASE: "One uppercase letter",
    PasswordRule.LOWERCASE: "One lowercase letter",
    PasswordRule.DIGIT: "One number",
    PasswordRule.SYMBOL: f"One special character ({PASSWORD_SYMBOLS})",
    PasswordRule.DIFFERS_FROM_CURRENT: "Different from the current password",
}

# Clauses every new password must satisfy, in display order
PASSWORD_POLICY: tuple[tuple[PasswordRule, Callable[[str], bool]], ...] = (
    (PasswordRule.MIN_LENGTH, lambda p: len(p) >= MIN_PASSWORD_LENGTH),
    (PasswordRule.UPPERCASE, lambda p: re.search(r"[A-Z]", p) is not None),
    (PasswordRule.LOWERCASE, lambda p: re.search(r"[a-z]", p) is not None),
    (PasswordRule.DIGIT, lambda p: re.search(r"[0-9]", p) is not None),
    (PasswordRule.SYMBOL, lambda p: _SYMBOL_PATTERN.search(p) is not None),
)


def unmet_password_rules(password: str) -> list[PasswordRule]:
    """Return the policy clauses a password fails, in policy order."""
    return [rule for rule, check in PASSWORD_POLICY if not check(password)]


def check_password_policy(password: str) -> PolicyViolation | None:
    """Check a candidate password against the policy.

    Args:
        password: Plain text candidate password.

    Returns:
        None if every clause passes, otherwise a PolicyViolation naming
        each unmet clause.
    """
    unmet = unmet_password_rules(password)
    if unmet:
        return PolicyViolation(unmet=tuple(unmet))
    return None


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash string
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against a hash.

    Args:
        plain_password: Plain text password to check
        hashed_password: Bcrypt hash to check against, None when unset

    Returns:
        True if password matches hash
    """
    if not plain_password or not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
