"""
Short code strategy selection.

One instance per strategy type. The Base62 strategy is built with the shared
random strategy as its fallback for codes that collide with an alias.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Union

from linktrack_app.config import settings
from linktrack_app.services.short_code_strategies import (
    Base62ShortCodeStrategy,
    RandomShortCodeStrategy,
    ShortCodeStrategy,
)

logger = logging.getLogger(__name__)


class ShortCodeStrategyType(Enum):
    RANDOM = "random"
    BASE62 = "base62"


class ShortCodeFactory:
    """Builds and caches short code strategies from settings."""

    _instances: Dict[ShortCodeStrategyType, ShortCodeStrategy] = {}

    @classmethod
    def create_strategy(
        cls,
        strategy_type: Optional[Union[ShortCodeStrategyType, str]] = None,
    ) -> ShortCodeStrategy:
        """
        Return the strategy for strategy_type, or the configured one.

        Raises:
            ValueError: the name is not a known strategy
        """
        if strategy_type is None:
            strategy_type = settings.short_code_strategy
        if isinstance(strategy_type, str):
            strategy_type = ShortCodeStrategyType(strategy_type.lower())

        cached = cls._instances.get(strategy_type)
        if cached is not None:
            return cached

        if strategy_type is ShortCodeStrategyType.RANDOM:
            strategy = RandomShortCodeStrategy(
                length=settings.short_code_length,
                max_retries=settings.max_retries,
            )
        else:
            strategy = Base62ShortCodeStrategy(
                salt=settings.short_code_salt,
                max_length=settings.short_code_length,
                fallback=cls.create_strategy(ShortCodeStrategyType.RANDOM),
            )

        logger.info("Short code strategy: %s", strategy_type.value)
        cls._instances[strategy_type] = strategy
        return strategy

    @classmethod
    def clear_instances(cls) -> None:
        cls._instances.clear()
