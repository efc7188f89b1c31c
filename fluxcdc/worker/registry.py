"""Static mapping of external task topics to handlers."""

from __future__ import annotations

import asyncio
import importlib
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Type

from pydantic import BaseModel

from ..contracts import LeasedTask
from ..errors import UnknownTopicError
from ..variables import extract_input, parse_variables, to_engine_variables

Handler = Callable[[Any, LeasedTask], Any]


@dataclass(frozen=True)
class TopicHandler:
    """A handler bound to one topic and the input model it requires.

    Without an input model the handler receives every task variable as a
    plain Python value.
    """

    topic: str
    handler: Handler
    input_model: Optional[Type[BaseModel]] = None

    def build_input(self, task: LeasedTask) -> Any:
        variables = parse_variables(task.variables)
        if self.input_model is None:
            return {name: value.to_python() for name, value in variables.items()}
        return extract_input(self.input_model, variables)

    async def __call__(self, task: LeasedTask) -> Dict[str, Dict[str, Any]]:
        """Run the handler and return its output as engine variables.

        Synchronous handlers run in a worker thread so they cannot stall the
        event loop.
        """
        payload = self.build_input(task)
        if inspect.iscoroutinefunction(self.handler):
            result = await self.handler(payload, task)
        else:
            result = await asyncio.to_thread(self.handler, payload, task)
        return to_engine_variables(result)


class TopicRegistry:
    """Topic name to handler table, frozen once a dispatcher starts using it."""

    def __init__(self) -> None:
        self._handlers: Dict[str, TopicHandler] = {}
        self._frozen = False

    def register(
        self,
        topic: str,
        handler: Handler,
        input_model: Optional[Type[BaseModel]] = None,
    ) -> TopicHandler:
        if self._frozen:
            raise RuntimeError("Registry is frozen; register handlers before starting")
        if topic in self._handlers:
            raise ValueError(f"Handler already registered for topic: {topic}")
        entry = TopicHandler(topic=topic, handler=handler, input_model=input_model)
        self._handlers[topic] = entry
        return entry

    def topic(
        self, name: str, input_model: Optional[Type[BaseModel]] = None
    ) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""

        def decorator(handler: Handler) -> Handler:
            self.register(name, handler, input_model)
            return handler

        return decorator

    def get(self, topic: str) -> TopicHandler:
        try:
            return self._handlers[topic]
        except KeyError:
            raise UnknownTopicError(topic) from None

    def freeze(self) -> None:
        self._frozen = True

    @property
    def topics(self) -> List[str]:
        return list(self._handlers)

    def __contains__(self, topic: object) -> bool:
        return topic in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


def load_registry(path: str) -> TopicRegistry:
    """Import a registry from ``package.module:attribute``."""
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got: {path}")
    module = importlib.import_module(module_name)
    registry = getattr(module, attribute, None)
    if not isinstance(registry, TopicRegistry):
        raise ValueError(f"{path} is not a TopicRegistry")
    return registry
