"""Token string generation.

Format:
    product: ``{PREFIX}-{CREDITS}-{RANDOM15}``
    master:  ``{PREFIX}-{CREDITS}USD-{RANDOM15}``

Tokens act as bearer credentials, so the default randomness source is
``secrets.SystemRandom``. Tests inject a seeded ``random.Random``.
"""

import random
import re
import secrets
import string
from typing import Optional

from tokenhub.core.exceptions import ValidationError
from tokenhub.core.ledger import TokenType

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9]{1,4}$")

AUTO_PREFIX_LENGTH = 4
SUFFIX_LENGTH = 15
BATCH_LABEL_SUFFIX_LENGTH = 10


class TokenStringFactory:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or secrets.SystemRandom()

    def random_string(self, length: int) -> str:
        return "".join(self.rng.choice(ALPHABET) for _ in range(length))

    def resolve_prefix(self, prefix_mode: str, prefix_input: Optional[str] = None) -> str:
        """auto 모드는 랜덤 4자리, custom 모드는 입력값 검증 후 사용"""
        if prefix_mode == "auto":
            return self.random_string(AUTO_PREFIX_LENGTH)
        if prefix_mode != "custom":
            raise ValidationError(
                "prefix_mode must be 'auto' or 'custom'",
                details={"prefix_mode": prefix_mode},
            )

        prefix = (prefix_input or "").strip()
        if not PREFIX_PATTERN.match(prefix):
            raise ValidationError(
                "Custom prefix must be 1-4 alphanumeric characters",
                details={"prefix_input": prefix_input},
            )
        return prefix

    def token_string(self, prefix: str, credits: int, token_type: TokenType) -> str:
        suffix = self.random_string(SUFFIX_LENGTH)
        if TokenType(token_type) == TokenType.MASTER:
            return f"{prefix}-{credits}USD-{suffix}"
        return f"{prefix}-{credits}-{suffix}"

    def batch_label(self, quantity: int) -> str:
        return f"BATCH-{quantity}tokens-{self.random_string(BATCH_LABEL_SUFFIX_LENGTH)}"

    def adjustment_label(self) -> str:
        return f"admin_{self.random_string(BATCH_LABEL_SUFFIX_LENGTH)}"
