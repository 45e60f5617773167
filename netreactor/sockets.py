"""Creation of listening and connected TCP, UDP and Unix sockets."""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from netreactor.sockopts import (
    SocketOption,
    create_socket,
    max_listener_backlog,
    set_ipv6_only,
)

_LISTENER_BACKLOG = max_listener_backlog()

_IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class UnsupportedProtocolError(ValueError):
    """The network is not one of unix, tcp, tcp4, tcp6, udp, udp4 or udp6."""

    default_message = "only unix, tcp/tcp4/tcp6, udp/udp4/udp6 are supported"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class UnsupportedTCPProtocolError(UnsupportedProtocolError):
    """The network is not one of tcp, tcp4 or tcp6."""

    default_message = "only tcp/tcp4/tcp6 are supported"


class UnsupportedUDPProtocolError(UnsupportedProtocolError):
    """The network is not one of udp, udp4 or udp6."""

    default_message = "only udp/udp4/udp6 are supported"


class UnsupportedUDSProtocolError(UnsupportedProtocolError):
    """The network is not unix."""

    default_message = "only unix is supported"


@dataclass(frozen=True)
class NetAddr:
    """A network endpoint: an IP address and port, or a Unix socket path."""

    network: str
    ip: Optional[str] = None
    port: int = 0
    zone: str = ""
    name: str = ""

    def __str__(self) -> str:
        if self.network.startswith("unix"):
            return self.name
        host = self.ip or ""
        if self.zone:
            host = f"{host}%{self.zone}"
        if ":" in host:
            return f"[{host}]:{self.port}"
        return f"{host}:{self.port}"


@dataclass(frozen=True)
class ResolvedAddress:
    """Everything needed to bind a socket: its address, family and parsed endpoint."""

    sockaddr: Any
    family: int
    addr: NetAddr
    ipv6_only: bool = False


def _split_host_port(hostport: str) -> Tuple[str, str]:
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {hostport!r}")
        host, rest = hostport[1:end], hostport[end + 1 :]
        if not rest.startswith(":"):
            raise ValueError(f"missing port in address {hostport!r}")
        port = rest[1:]
    else:
        i = hostport.rfind(":")
        if i < 0:
            raise ValueError(f"missing port in address {hostport!r}")
        host, port = hostport[:i], hostport[i + 1 :]
        if ":" in host:
            raise ValueError(f"too many colons in address {hostport!r}")
        if "[" in host or "]" in host:
            raise ValueError(f"unexpected bracket in address {hostport!r}")
    if "[" in port or "]" in port:
        raise ValueError(f"unexpected bracket in address {hostport!r}")
    return host, port


def _parse_port(port: str, transport: str) -> int:
    if port == "":
        return 0
    if port.isdigit():
        value = int(port)
        if value > 0xFFFF:
            raise ValueError(f"invalid port {port!r}")
        return value
    try:
        return socket.getservbyname(port, transport)
    except OSError as exc:
        raise ValueError(f"unknown port {transport}/{port}") from exc


def _is_v4(ip: _IPAddress) -> bool:
    return ip.version == 4 or getattr(ip, "ipv4_mapped", None) is not None


def _as_v4(ip: _IPAddress) -> ipaddress.IPv4Address:
    if isinstance(ip, ipaddress.IPv4Address):
        return ip
    mapped = ip.ipv4_mapped
    assert mapped is not None
    return mapped


def _lookup_host(host: str, version: str, sotype: int) -> _IPAddress:
    family = {"4": socket.AF_INET, "6": socket.AF_INET6}.get(version, socket.AF_UNSPEC)
    infos = socket.getaddrinfo(host, None, family, sotype)
    addrs = [ipaddress.ip_address(info[4][0].split("%", 1)[0]) for info in infos]
    if version == "4":
        addrs = [a for a in addrs if _is_v4(a)]
    elif version == "6":
        addrs = [a for a in addrs if not _is_v4(a)]
    else:
        addrs.sort(key=lambda a: not _is_v4(a))
    if not addrs:
        raise ValueError(f"no suitable address found for {host!r}")
    return addrs[0]


def _resolve_inet(
    proto: str, base: str, hostport: str, sotype: int
) -> Tuple[Optional[_IPAddress], NetAddr]:
    version = proto[len(base) :]
    host, port_text = _split_host_port(hostport)
    port = _parse_port(port_text, base)
    if not host:
        return None, NetAddr(network=base, port=port)

    zone = ""
    if "%" in host:
        host, zone = host.split("%", 1)
    try:
        ip: _IPAddress = ipaddress.ip_address(host)
    except ValueError:
        if zone:
            raise ValueError(f"invalid IP address {host}%{zone!r}") from None
        ip = _lookup_host(host, version, sotype)
    else:
        if zone and _is_v4(ip):
            raise ValueError(f"zone given for IPv4 address {host!r}")
        if version == "4" and not _is_v4(ip):
            raise ValueError(f"no suitable address found for {hostport!r}")
        if version == "6" and _is_v4(ip):
            raise ValueError(f"no suitable address found for {hostport!r}")

    shown = str(_as_v4(ip)) if _is_v4(ip) else str(ip)
    return ip, NetAddr(network=base, ip=shown, port=port, zone=zone)


def _get_inet_sock_addr(
    proto: str,
    addr: str,
    base: str,
    sotype: int,
    error_cls: type,
) -> ResolvedAddress:
    if proto not in (base, base + "4", base + "6"):
        raise error_cls()
    ip, net_addr = _resolve_inet(proto, base, addr, sotype)

    if ip is not None:
        version = "4" if _is_v4(ip) else "6"
    else:
        version = proto[len(base) :]

    if version == "4":
        host = str(_as_v4(ip)) if ip is not None else "0.0.0.0"
        return ResolvedAddress((host, net_addr.port), socket.AF_INET, net_addr, False)

    scope_id = socket.if_nametoindex(net_addr.zone) if net_addr.zone else 0
    host = str(ip) if ip is not None else "::"
    return ResolvedAddress(
        (host, net_addr.port, 0, scope_id),
        socket.AF_INET6,
        net_addr,
        version == "6",
    )


def get_tcp_sock_addr(proto: str, addr: str) -> ResolvedAddress:
    """Resolve a TCP address for binding, choosing the family from the IP."""
    return _get_inet_sock_addr(
        proto, addr, "tcp", socket.SOCK_STREAM, UnsupportedTCPProtocolError
    )


def get_udp_sock_addr(proto: str, addr: str) -> ResolvedAddress:
    """Resolve a UDP address for binding, choosing the family from the IP."""
    return _get_inet_sock_addr(
        proto, addr, "udp", socket.SOCK_DGRAM, UnsupportedUDPProtocolError
    )


def get_unix_sock_addr(proto: str, addr: str) -> ResolvedAddress:
    """Resolve a Unix stream socket address."""
    if proto != "unix":
        raise UnsupportedUDSProtocolError()
    family = getattr(socket, "AF_UNIX", None)
    if family is None:
        raise UnsupportedUDSProtocolError("unix sockets are not available here")
    return ResolvedAddress(addr, family, NetAddr(network="unix", name=addr), False)


def _apply_options(sock: socket.socket, sock_opts: Tuple[SocketOption, ...]) -> None:
    for opt in sock_opts:
        opt.apply(sock)


def tcp_socket(
    proto: str, addr: str, passive: bool, *args: SocketOption
) -> Tuple[socket.socket, NetAddr]:
    """Create a non-blocking TCP socket bound to ``addr``.

    A passive socket listens with the largest backlog the system allows;
    otherwise the socket connects to the same address.
    """
    resolved = get_tcp_sock_addr(proto, addr)
    sock = create_socket(resolved.family, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    try:
        if resolved.family == socket.AF_INET6 and resolved.ipv6_only:
            set_ipv6_only(sock, 1)
        _apply_options(sock, args)
        sock.bind(resolved.sockaddr)
        if passive:
            sock.listen(_LISTENER_BACKLOG)
        else:
            sock.connect(resolved.sockaddr)
    except BaseException:
        sock.close()
        raise
    return sock, resolved.addr


def udp_socket(
    proto: str, addr: str, connect: bool, *args: SocketOption
) -> Tuple[socket.socket, NetAddr]:
    """Create a non-blocking, broadcast-capable UDP socket bound to ``addr``."""
    resolved = get_udp_sock_addr(proto, addr)
    sock = create_socket(resolved.family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        if resolved.family == socket.AF_INET6 and resolved.ipv6_only:
            set_ipv6_only(sock, 1)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        _apply_options(sock, args)
        sock.bind(resolved.sockaddr)
        if connect:
            sock.connect(resolved.sockaddr)
    except BaseException:
        sock.close()
        raise
    return sock, resolved.addr


def unix_socket(
    proto: str, addr: str, passive: bool, *args: SocketOption
) -> Tuple[socket.socket, NetAddr]:
    """Create a non-blocking Unix stream socket bound to the path ``addr``."""
    resolved = get_unix_sock_addr(proto, addr)
    sock = create_socket(resolved.family, socket.SOCK_STREAM, 0)
    try:
        _apply_options(sock, args)
        sock.bind(resolved.sockaddr)
        if passive:
            sock.listen(_LISTENER_BACKLOG)
        else:
            sock.connect(resolved.sockaddr)
    except BaseException:
        sock.close()
        raise
    return sock, resolved.addr


def ip6_zone_to_string(zone: int) -> str:
    """Name the interface with index ``zone``; "" for 0, the number if unknown."""
    if zone == 0:
        return ""
    index_to_name = getattr(socket, "if_indextoname", None)
    if index_to_name is not None:
        try:
            return index_to_name(zone)
        except (OSError, OverflowError, ValueError):
            pass
    return str(zone)


def _inet_addr(network: str, family: int, sockaddr: Any) -> Optional[NetAddr]:
    if family == socket.AF_INET:
        host, port = sockaddr[0], sockaddr[1]
        return NetAddr(network=network, ip=host, port=port)
    if family == socket.AF_INET6:
        host, port = sockaddr[0], sockaddr[1]
        scope_id = sockaddr[3] if len(sockaddr) > 3 else 0
        host = host.split("%", 1)[0]
        return NetAddr(
            network=network, ip=host, port=port, zone=ip6_zone_to_string(scope_id)
        )
    return None


def sockaddr_to_tcp_or_unix_addr(family: int, sockaddr: Any) -> Optional[NetAddr]:
    """Convert a socket address to a TCP or Unix NetAddr, or None if not possible."""
    if family == getattr(socket, "AF_UNIX", None):
        name = sockaddr.decode("utf-8", "surrogateescape") if isinstance(
            sockaddr, (bytes, bytearray)
        ) else str(sockaddr)
        return NetAddr(network="unix", name=name)
    return _inet_addr("tcp", family, sockaddr)


def sockaddr_to_udp_addr(family: int, sockaddr: Any) -> Optional[NetAddr]:
    """Convert a socket address to a UDP NetAddr, or None if not possible."""
    return _inet_addr("udp", family, sockaddr)