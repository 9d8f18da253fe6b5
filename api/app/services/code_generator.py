"""Random access code generation."""

import secrets
import string

DEFAULT_CODE_LENGTH = 8
DEFAULT_ALPHABET = string.ascii_uppercase


def generate_code(
    length: int = DEFAULT_CODE_LENGTH, alphabet: str = DEFAULT_ALPHABET
) -> str:
    """Return a code of ``length`` characters drawn uniformly from ``alphabet``.

    Characters are sampled independently with replacement, so repeated
    letters are allowed. No uniqueness check is made against codes issued
    to other users.

    Raises:
        ValueError: If length is not positive or the alphabet is empty
    """
    if length <= 0:
        raise ValueError(f"Code length must be positive, got {length}")
    if not alphabet:
        raise ValueError("Code alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))

