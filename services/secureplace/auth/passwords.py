"""Credential generation for newly provisioned accounts.

Generated passwords are sent to the employee once by email and never stored
by this service. The identity service owns the hash.
"""

import secrets
import string

PASSWORD_LENGTH = 12

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*"

ALL_CHARACTERS = UPPERCASE + LOWERCASE + DIGITS + SYMBOLS

# CSPRNG rather than a plain PRNG; the composition policy is unchanged.
_random = secrets.SystemRandom()


def generate_password() -> str:
    """Generate a 12-character password.

    Contains at least one uppercase letter, one lowercase letter, one digit and
    one symbol from SYMBOLS. The remaining characters are drawn uniformly from
    all four classes and the result is shuffled, so no class sits at a fixed
    position.
    """
    chars = [
        _random.choice(UPPERCASE),
        _random.choice(LOWERCASE),
        _random.choice(DIGITS),
        _random.choice(SYMBOLS),
    ]
    chars.extend(_random.choice(ALL_CHARACTERS) for _ in range(PASSWORD_LENGTH - len(chars)))
    _random.shuffle(chars)
    return "".join(chars)
