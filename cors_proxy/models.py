from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Tuple, Union

# Raw (name, value) byte pairs, as ASGI and httpx carry them
HeaderList = List[Tuple[bytes, bytes]]


@dataclass
class ProxyRequest:
    method: str
    target_url: str
    headers: HeaderList = field(default_factory=list)
    body: bytes = b""


@dataclass
class ProxyResponse:
    """
    Response produced by the forwarder.

    ``body`` is ``bytes`` when the upstream body was materialized (rewritten
    HTML) and an async byte iterator when it is relayed as it arrives.
    ``closer`` releases the upstream connection of a relayed body that is
    never iterated.
    """

    status_code: int
    headers: HeaderList
    body: Union[bytes, AsyncIterator[bytes]]
    closer: Optional[Callable[[], Awaitable[None]]] = None

    @property
    def is_streaming(self) -> bool:
        return not isinstance(self.body, (bytes, bytearray))

    @property
    def content_type(self) -> str:
        return self.header("content-type")

    def header(self, name: str, default: str = "") -> str:
        name_lower = name.lower().encode("latin-1")
        for key, value in self.headers:
            if key.lower() == name_lower:
                return value.decode("latin-1")
        return default

    async def aclose(self):
        if self.closer is not None:
            await self.closer()
