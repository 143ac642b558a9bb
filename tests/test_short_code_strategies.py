"""
Tests for short code generation strategies.
"""
from unittest.mock import MagicMock

import pytest

from linktrack_app.exceptions import InvalidAliasError, ShortCodeGenerationError
from linktrack_app.services.link_store import LinkStore
from linktrack_app.services.short_code_strategies import (
    RandomShortCodeStrategy,
    Base62ShortCodeStrategy,
    validate_custom_alias,
)
from linktrack_app.services.short_code_factory import (
    ShortCodeFactory,
    ShortCodeStrategyType
)


def store_with_taken(*codes):
    """Store stub that reports the given codes as already used"""
    store = MagicMock(spec=LinkStore)
    store.short_code_exists.side_effect = lambda code: code in codes
    return store


class TestRandomStrategy:
    """Test URL-safe random strategy"""

    def test_generates_configured_length(self, db_session):
        strategy = RandomShortCodeStrategy(length=6)

        code = strategy.generate(link_id=1, store=LinkStore(db_session))

        assert len(code) == 6
        assert all(c in RandomShortCodeStrategy.ALPHABET for c in code)

    def test_retries_on_collision(self):
        strategy = RandomShortCodeStrategy(length=6, max_retries=5)
        store = MagicMock(spec=LinkStore)
        store.short_code_exists.side_effect = [True, True, False]

        code = strategy.generate(link_id=1, store=store)

        assert len(code) == 6
        assert store.short_code_exists.call_count == 3

    def test_last_attempt_uses_longer_code(self):
        strategy = RandomShortCodeStrategy(length=6, max_retries=3)
        store = MagicMock(spec=LinkStore)
        store.short_code_exists.side_effect = [True, True, False]

        code = strategy.generate(link_id=1, store=store)

        assert len(code) == 7

    def test_gives_up_after_max_retries(self):
        strategy = RandomShortCodeStrategy(length=6, max_retries=4)
        store = MagicMock(spec=LinkStore)
        store.short_code_exists.return_value = True

        with pytest.raises(ShortCodeGenerationError):
            strategy.generate(link_id=1, store=store)
        assert store.short_code_exists.call_count == 4


class TestBase62Strategy:
    """Test Base62 encoding strategy"""

    def test_generates_correct_length(self):
        """Test that Base62 strategy generates codes of correct length"""
        strategy = Base62ShortCodeStrategy(salt=1000, max_length=5)

        code = strategy.generate(link_id=1, store=store_with_taken())

        assert len(code) <= 5
        assert code.isalnum()

    def test_same_id_same_code(self):
        """Test that same ID generates same code (deterministic)"""
        strategy = Base62ShortCodeStrategy(salt=1000, max_length=5)

        code1 = strategy.generate(link_id=123, store=store_with_taken())
        code2 = strategy.generate(link_id=123, store=store_with_taken())

        assert code1 == code2

    def test_early_ids_are_unique(self):
        strategy = Base62ShortCodeStrategy(salt=1256, max_length=5)

        codes = {strategy.generate(link_id, store_with_taken()) for link_id in range(1, 101)}

        assert len(codes) == 100

    def test_obfuscation_with_salt(self):
        """Test that salt obfuscates the sequence"""
        strategy_no_salt = Base62ShortCodeStrategy(salt=0, max_length=5)
        strategy_with_salt = Base62ShortCodeStrategy(salt=1000, max_length=5)

        code_no_salt = strategy_no_salt.generate(link_id=1, store=store_with_taken())
        code_with_salt = strategy_with_salt.generate(link_id=1, store=store_with_taken())

        assert code_no_salt != code_with_salt

    def test_exceeding_max_length_raises(self):
        strategy = Base62ShortCodeStrategy(salt=1256, max_length=3)

        with pytest.raises(ShortCodeGenerationError):
            strategy.generate(link_id=62 ** 3, store=store_with_taken())

    def test_alias_clash_uses_fallback(self):
        strategy = Base62ShortCodeStrategy(salt=0, max_length=5)
        taken = strategy._base62_encode(5000)

        code = strategy.generate(link_id=5000, store=store_with_taken(taken))

        assert code != taken
        assert len(code) == 5


class TestCustomAlias:

    @pytest.mark.parametrize("alias", ["abc", "my-link", "Under_score_20_chars"])
    def test_accepts_valid_aliases(self, alias):
        assert validate_custom_alias(alias) == alias

    @pytest.mark.parametrize("alias", ["", "ab", "x" * 21, "white space", "emoji🙂", "a.b.c"])
    def test_rejects_invalid_aliases(self, alias):
        with pytest.raises(InvalidAliasError):
            validate_custom_alias(alias)


class TestShortCodeFactory:
    """Test strategy factory"""

    def test_creates_random_strategy(self):
        """Test factory creates random strategy"""
        strategy = ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM)
        assert isinstance(strategy, RandomShortCodeStrategy)

    def test_creates_base62_strategy(self):
        """Test factory creates Base62 strategy"""
        strategy = ShortCodeFactory.create_strategy(ShortCodeStrategyType.BASE62)
        assert isinstance(strategy, Base62ShortCodeStrategy)

    def test_creates_default_from_settings(self):
        """Test factory uses settings when no type specified (random by default)"""
        strategy = ShortCodeFactory.create_strategy()
        assert isinstance(strategy, RandomShortCodeStrategy)

    def test_accepts_strategy_name(self):
        """Test factory accepts the settings spelling of a strategy"""
        strategy = ShortCodeFactory.create_strategy("Base62")
        assert isinstance(strategy, Base62ShortCodeStrategy)

    def test_rejects_unknown_name(self):
        """Test unknown strategy names are refused"""
        with pytest.raises(ValueError):
            ShortCodeFactory.create_strategy("sequential")

    def test_base62_falls_back_to_shared_random(self):
        """Test Base62 uses the cached random strategy as its fallback"""
        base62 = ShortCodeFactory.create_strategy(ShortCodeStrategyType.BASE62)
        random_strategy = ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM)
        assert base62.fallback is random_strategy

    def test_returns_cached_instance(self):
        """Test repeated calls return the same instance"""
        first = ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM)
        assert ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM) is first
