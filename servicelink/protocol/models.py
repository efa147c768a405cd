"""Messages exchanged by the Discovery service."""

from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

M = TypeVar("M", bound=BaseModel)


class Endpoint(BaseModel):
    """Address of a remote service.

    The port alone never selects plaintext or TLS; that is part of the
    channel configuration.
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, lt=65536)

    @property
    def target(self) -> str:
        """gRPC target string (``host:port``)."""
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> "Endpoint":
        """Parse ``host:port`` (IPv6 hosts in brackets, e.g. ``[::1]:9001``).

        Raises:
            ValueError: If the value has no port or the port is invalid
        """
        host, sep, port = value.rpartition(":")
        if not sep or not host:
            raise ValueError(f"Expected host:port, got {value!r}")
        try:
            port_number = int(port)
        except ValueError:
            raise ValueError(f"Invalid port in {value!r}") from None
        return cls(host=host, port=port_number)

    def __str__(self) -> str:
        return self.target


class Empty(BaseModel):
    """Message without fields."""


class Configuration(BaseModel):
    """Opaque configuration pushed to a service."""

    name: str = ""
    values: dict[str, Any] = Field(default_factory=dict)


class ConfigStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


class ConfigResult(BaseModel):
    """Outcome of applying a configuration on the remote side."""

    status: ConfigStatus = ConfigStatus.OK
    message: str = ""


class EndpointDescriptor(BaseModel):
    """An endpoint advertised by a peer, with the capabilities it offers."""

    name: str
    endpoint: Endpoint
    capabilities: list[str] = Field(default_factory=list)


class ServiceEndpoints(BaseModel):
    """Endpoints a peer advertises."""

    endpoints: list[EndpointDescriptor] = Field(default_factory=list)


def encode(message: BaseModel) -> bytes:
    """Serialize a message for the wire."""
    return message.model_dump_json().encode("utf-8")


def decoder(model: type[M]):
    """Build a wire deserializer for ``model``."""

    def decode(data: bytes) -> M:
        return model.model_validate_json(data)

    return decode
