from __future__ import annotations

import re
from dataclasses import dataclass

from .settings import ConformSettings, DeviceType

_DEVICE_TYPES = "|".join(device_type.value for device_type in DeviceType)

# Host may be a bracketed IPv6 literal, an IPv4 address or a DNS name.
_ALPACA_URI = re.compile(
    r"^(?P<scheme>[Hh][Tt][Tt][Pp][Ss]?)://"
    r"(?P<host>\[[0-9A-Fa-f:.%\w]+\]|[A-Za-z0-9](?:[A-Za-z0-9\-.]*[A-Za-z0-9])?)"
    r"(?::(?P<port>[0-9]{1,5}))?"
    r"/api/v(?P<api_version>[0-9]+)"
    rf"/(?P<device_type>{_DEVICE_TYPES})"
    r"/(?P<device_number>[0-9]{1,3})/?$"
)

DEFAULT_PORT = 80


@dataclass(frozen=True)
class AlpacaDeviceAddress:
    scheme: str
    host: str
    port: int
    api_version: int
    device_type: DeviceType
    device_number: int

    def apply(self, settings: ConformSettings) -> ConformSettings:
        return settings.model_copy(
            update={
                "scheme": self.scheme,
                "host": self.host,
                "port": self.port,
                "api_version": self.api_version,
                "device_type": self.device_type,
                "device_number": self.device_number,
            }
        )


def parse_alpaca_uri(uri: str) -> AlpacaDeviceAddress:
    """Parse `http(s)://host[:port]/api/v1/{devicetype}/{number}` into its parts."""
    match = _ALPACA_URI.match(uri.strip())
    if match is None:
        raise ValueError(f"The Alpaca URI is invalid: {uri}")

    port_text = match.group("port")
    port = int(port_text) if port_text else DEFAULT_PORT
    if port > 65535:
        raise ValueError(f"The Alpaca URI port is out of range: {port}")

    return AlpacaDeviceAddress(
        scheme=match.group("scheme").lower(),
        host=match.group("host"),
        port=port,
        api_version=int(match.group("api_version")),
        device_type=DeviceType(match.group("device_type")),
        device_number=int(match.group("device_number")),
    )
