"""
Outbound network policy for tools that reach the web.
Blocks local/private targets, including hostnames that resolve to them.
"""
from __future__ import annotations

import ipaddress
import socket
from typing import Callable, List, Optional, Union
from urllib.parse import urlsplit

from .cancel import CancelToken


IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Resolver = Callable[[str], List[str]]

EXTRA_BLOCKED_NETWORKS = [
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("100.64.0.0/10"),
]


class NetworkPolicyViolation(PermissionError):
    pass


def system_resolver(hostname: str) -> List[str]:
    addr_info = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    return sorted({info[4][0] for info in addr_info if info and len(info) > 4 and info[4]})


def is_private_or_local_ip(ip: IPAddress) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    if ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_multicast or ip.is_unspecified:
        return True
    if ip.version == 4:
        return any(ip in network for network in EXTRA_BLOCKED_NETWORKS)
    return False


def is_local_hostname(hostname: str) -> bool:
    normalized = hostname.strip().lower()
    return normalized == "localhost" or normalized.endswith(".localhost")


def parse_ip_literal(hostname: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        pass
    # Legacy numeric IPv4 forms such as 2130706433, 0x7f.1 or 127.1.
    if hostname[:1].isdigit():
        try:
            return ipaddress.IPv4Address(socket.inet_aton(hostname))
        except OSError:
            return None
    return None


class NetworkPolicy:
    def __init__(self, resolver: Optional[Resolver] = None, allow_private: bool = False):
        self.resolver = resolver or system_resolver
        self.allow_private = allow_private

    def ensure_allowed(self, raw_url: str, cancel: Optional[CancelToken] = None):
        if self.allow_private:
            return

        try:
            parsed = urlsplit((raw_url or "").strip())
            hostname = (parsed.hostname or "").strip()
        except ValueError as exc:
            raise NetworkPolicyViolation(f"invalid URL: {exc}") from exc

        scheme = parsed.scheme.lower()
        if scheme not in {"http", "https"}:
            raise NetworkPolicyViolation(f"unsupported URL scheme {parsed.scheme!r}")
        if not hostname:
            raise NetworkPolicyViolation("invalid URL host")
        if is_local_hostname(hostname):
            raise NetworkPolicyViolation("blocked outbound host")

        ip_literal = parse_ip_literal(hostname)
        if ip_literal is not None:
            if is_private_or_local_ip(ip_literal):
                raise NetworkPolicyViolation("blocked outbound IP")
            return

        if cancel is not None:
            cancel.raise_if_done()
        try:
            addresses = self.resolver(hostname)
        except OSError as exc:
            raise NetworkPolicyViolation(f"failed resolving host: {exc}") from exc
        if not addresses:
            raise NetworkPolicyViolation("failed resolving host: no addresses")

        for address in addresses:
            try:
                ip_obj = ipaddress.ip_address(address.split("%", 1)[0])
            except ValueError as exc:
                raise NetworkPolicyViolation(f"failed resolving host: bad address {address!r}") from exc
            if is_private_or_local_ip(ip_obj):
                raise NetworkPolicyViolation("blocked outbound host")
