"""Internal API package for the Sinopé integration.

This package provides the classes required to talk to a Sinopé GT125
gateway, independently of Home Assistant.  The main entry point is
:class:`SinopeGateway`, which owns the TCP connection
(:class:`SinopeClient`), the periodic polling of the paired devices and
the device search.  Frame encoding lives in :mod:`.frame` and the
application data items in :mod:`.appdata`.

The API is separated into its own package so that all Home Assistant
integration code can depend on a stable interface rather than on the
low-level communication primitives.
"""

from .client import SinopeClient  # noqa: F401
from .config import Endpoint  # noqa: F401
from .devices import SinopeDevice, SinopeDimmer, SinopeThermostat  # noqa: F401
from .exceptions import (  # noqa: F401
    CommandError,
    CommunicationError,
    ConfigurationError,
    GatewayBusyError,
    GatewayConnectionError,
    LoginRefusedError,
    ProtocolError,
    SinopeError,
)
from .gateway import GatewayStatus, SinopeGateway, StatusDetail, StatusInfo  # noqa: F401

__all__ = [
    "CommandError",
    "CommunicationError",
    "ConfigurationError",
    "Endpoint",
    "GatewayBusyError",
    "GatewayConnectionError",
    "GatewayStatus",
    "LoginRefusedError",
    "ProtocolError",
    "SinopeClient",
    "SinopeDevice",
    "SinopeDimmer",
    "SinopeError",
    "SinopeGateway",
    "SinopeThermostat",
    "StatusDetail",
    "StatusInfo",
]
