"""Binding the broker to a WireGuard tunnel.

The tunnel itself (handshakes, encryption, peers) is run by a WireGuard
interface configured from ``render_interface_config``. The broker only
listens on, and dials from, the interface's private address, so the HTTP
surface is reachable by authenticated tunnel peers alone.
"""

import base64
import ipaddress
import logging
import socket
from typing import Protocol

import httpx

from core.config import WireguardBase, decode_key
from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LISTEN_BACKLOG = 128


class TunnelTransport(Protocol):
    """Listen/dial primitives scoped to the tunnel's virtual network."""

    def listen(self, port: int) -> socket.socket: ...
    def transport(self) -> httpx.AsyncBaseTransport: ...


class InterfaceTunnel:
    """Tunnel provided by an OS WireGuard interface holding ``local_address``."""

    def __init__(self, wireguard: WireguardBase) -> None:
        self._wireguard = wireguard
        self._address = ipaddress.ip_address(wireguard.local_address)

    @property
    def local_address(self) -> str:
        return str(self._address)

    def listen(self, port: int) -> socket.socket:
        """Bind a listening TCP socket on the tunnel address.

        Raises ConfigurationError if the address is not up or the port is taken.
        """
        family = socket.AF_INET6 if self._address.version == 6 else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.local_address, port))
            sock.listen(LISTEN_BACKLOG)
        except OSError as e:
            sock.close()
            raise ConfigurationError(
                f"failed to start TCP listener on [{self.local_address}]:{port}: {e}"
            ) from e
        logger.info("tunnel.listen address=%s port=%s", self.local_address, port)
        return sock

    def transport(self) -> httpx.AsyncBaseTransport:
        """Transport whose outbound connections originate on the tunnel."""
        return httpx.AsyncHTTPTransport(local_address=self.local_address)


def _b64(key: str) -> str:
    return base64.b64encode(decode_key(key)).decode("ascii")


def render_interface_config(wireguard: WireguardBase) -> str:
    """Render a wg-quick style configuration for the broker's interface."""
    address = ipaddress.ip_address(wireguard.local_address)
    prefix = 128 if address.version == 6 else 32

    lines = [
        "[Interface]",
        f"PrivateKey = {_b64(wireguard.private_key)}",
        f"Address = {address}/{prefix}",
    ]
    if wireguard.listen_port:
        lines.append(f"ListenPort = {wireguard.listen_port}")

    for peer in wireguard.peers:
        lines += [
            "",
            "[Peer]",
            f"PublicKey = {_b64(peer.public_key)}",
            f"AllowedIPs = {', '.join(ip.strip() for ip in peer.allowed_ips.split(','))}",
        ]
        if peer.endpoint:
            lines.append(f"Endpoint = {peer.endpoint}")
        if peer.persistent_keepalive_interval:
            lines.append(f"PersistentKeepalive = {peer.persistent_keepalive_interval}")

    return "\n".join(lines) + "\n"
