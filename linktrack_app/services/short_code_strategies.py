"""
Short code generation strategies.
Uses Strategy Pattern to allow different generation algorithms.

Generated codes and custom aliases share one namespace, so every strategy
checks the store before handing a code out.
"""

import re
import secrets
import string
from abc import ABC, abstractmethod
from typing import Optional

from linktrack_app.exceptions import InvalidAliasError, ShortCodeGenerationError
from linktrack_app.services.link_store import LinkStore

CUSTOM_ALIAS_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,20}$")


def validate_custom_alias(alias: str) -> str:
    """
    Check an owner-chosen alias: 3-20 letters, digits, hyphens or underscores.

    Raises:
        InvalidAliasError: alias does not match the format
    """
    if not alias or not CUSTOM_ALIAS_PATTERN.match(alias):
        raise InvalidAliasError(
            "Custom alias must be 3-20 characters long and contain only "
            "letters, numbers, hyphens, and underscores"
        )
    return alias


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, link_id: int, store: LinkStore) -> str:
        """
        Generate a short code.

        Args:
            link_id: The database ID of the link record
            store: Link store, for strategies that need to check uniqueness

        Returns:
            A short code not used by any other link
        """
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    URL-safe random codes with collision checking.

    The last attempt uses a code one character longer, which moves it into
    a namespace with 64x the room.
    """

    ALPHABET = string.ascii_letters + string.digits + "_-"

    def __init__(self, length: int = 6, max_retries: int = 5):
        self.length = length
        self.max_retries = max_retries

    def generate(self, link_id: int, store: LinkStore) -> str:
        length = self.length
        for attempt in range(self.max_retries):
            if attempt == self.max_retries - 1:
                length += 1
            short_code = self._generate_random_string(length)
            if not store.short_code_exists(short_code):
                return short_code

        raise ShortCodeGenerationError(
            f"Could not generate unique short code after {self.max_retries} attempts"
        )

    def _generate_random_string(self, length: int) -> str:
        return ''.join(secrets.choice(self.ALPHABET) for _ in range(length))


class Base62ShortCodeStrategy(ShortCodeStrategy):
    """
    Base62 encoding of the link id with a salt offset.

    No collisions between generated codes; a clash with an existing custom
    alias is handed to the fallback strategy.
    """

    BASE62_CHARS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

    def __init__(
        self,
        salt: int = 1000,
        max_length: int = 6,
        fallback: Optional[ShortCodeStrategy] = None,
    ):
        self.salt = salt
        self.max_length = max_length
        self.fallback = fallback or RandomShortCodeStrategy(length=max_length)

    def generate(self, link_id: int, store: LinkStore) -> str:
        obfuscated_id = link_id + self.salt
        encoded = self._base62_encode(obfuscated_id)

        # Truncating would produce duplicates
        if len(encoded) > self.max_length:
            raise ShortCodeGenerationError(
                f"Generated code '{encoded}' exceeds max length {self.max_length}. "
                f"Link ID: {link_id}, Obfuscated ID: {obfuscated_id}. "
                f"Consider increasing max_length to handle higher volume."
            )

        if store.short_code_exists(encoded):
            return self.fallback.generate(link_id, store)
        return encoded

    def _base62_encode(self, number: int) -> str:
        """Convert integer to Base62 string: 0-9, a-z, A-Z."""
        if number == 0:
            return self.BASE62_CHARS[0]

        result = ""
        while number > 0:
            result = self.BASE62_CHARS[number % 62] + result
            number //= 62

        return result
