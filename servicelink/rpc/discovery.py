"""Discovery service backed by a static list of endpoints."""

import logging
import threading
from typing import Any, Iterable, Optional

import grpc

from servicelink.protocol.models import (
    ConfigResult,
    ConfigStatus,
    Configuration,
    Empty,
    EndpointDescriptor,
    ServiceEndpoints,
)
from servicelink.protocol.service import DiscoveryServicer

logger = logging.getLogger(__name__)


class StaticDiscoveryServicer(DiscoveryServicer):
    """Advertises a fixed set of endpoints and remembers the last configuration."""

    def __init__(self, endpoints: Iterable[EndpointDescriptor] = ()):
        self._endpoints = list(endpoints)
        self._lock = threading.Lock()
        self._configuration: Optional[Configuration] = None

    @classmethod
    def from_dicts(cls, items: Iterable[dict[str, Any]]) -> "StaticDiscoveryServicer":
        """Build from plain dicts, e.g. the ``advertised_endpoints`` setting.

        Raises:
            pydantic.ValidationError: If an item is not a valid descriptor
        """
        return cls(EndpointDescriptor.model_validate(item) for item in items)

    @property
    def configuration(self) -> Optional[Configuration]:
        with self._lock:
            return self._configuration

    def configure(self, request: Configuration, context: grpc.ServicerContext) -> ConfigResult:
        with self._lock:
            self._configuration = request

        if not request.values:
            logger.warning(f"Empty configuration received (name={request.name!r})")
            return ConfigResult(status=ConfigStatus.WARNING, message="configuration is empty")

        logger.info(f"Configuration {request.name!r} applied ({len(request.values)} values)")
        return ConfigResult(status=ConfigStatus.OK)

    def ping(self, request: Empty, context: grpc.ServicerContext) -> Empty:
        return Empty()

    def discover_endpoints(
        self, request: Empty, context: grpc.ServicerContext
    ) -> ServiceEndpoints:
        return ServiceEndpoints(endpoints=list(self._endpoints))
