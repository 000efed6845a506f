"""Plugin descriptor of a server transport."""

import functools
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from mcp_test_harness.servers.base import ServerHandle


@dataclass(frozen=True, kw_only=True)
class ServerManifest[ConfigT: BaseModel]:
    """Pairs a transport's option schema with the factory of its handles.

    Transports are looked up by key and only imported when selected.
    """

    config_cls: type[ConfigT]
    server_factory: Callable[[ConfigT], ServerHandle]

    def bind(self, options: Mapping[str, Any]) -> Callable[[], ServerHandle]:
        """Validate transport options and return a factory of fresh handles.

        Raises:
            pydantic.ValidationError: If the options do not match config_cls

        """
        config = self.config_cls.model_validate(options)
        return functools.partial(self.server_factory, config)
