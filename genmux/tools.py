import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from .types import ToolDefinition, ToolHandler

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Name -> tool mapping shared by the dispatcher and every adapter.

    One instance is handed to each adapter at construction, so a tool
    registered once is callable from any provider. Registration is additive;
    registering an existing name replaces it. Schemas are not validated here;
    each provider accepts or rejects them on its own.
    """

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    def register(
        self,
        name: str,
        description: str,
        parameters: Dict[str, Any],
        handler: ToolHandler,
    ) -> ToolDefinition:
        """
        Register (or replace) a tool.

        Args:
            name (str): Unique tool name exposed to the models.
            description (str): What the tool does, shown to the model.
            parameters (Dict): JSON schema of the arguments object.
            handler (Callable): Called with the parsed arguments dict. May be
                                a coroutine function.

        Returns:
            ToolDefinition: The stored definition.
        """
        if name in self._tools:
            logger.debug("replacing tool %s", name)
        definition = ToolDefinition(
            name=name,
            description=description,
            parameters=parameters,
            handler=handler,
        )
        self._tools[name] = definition
        return definition

    def tool(
        self,
        name: str,
        description: str,
        parameters: Dict[str, Any],
    ) -> Callable[[ToolHandler], ToolHandler]:
        """
        Decorator form of ``register``.

        Example:
            >>> @registry.tool("echo", "Echo the input", {"type": "object", "properties": {}})
            ... def echo(args):
            ...     return args
        """
        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(name, description, parameters, handler)
            return handler
        return decorator

    def resolve(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)
