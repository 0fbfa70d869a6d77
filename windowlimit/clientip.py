"""Extraction and normalisation of client IP addresses."""

from __future__ import annotations

import ipaddress

__all__ = ["InvalidAddressError", "clean_ip", "get_client_ip"]


class InvalidAddressError(ValueError):
    """Raised when no valid client IP address can be determined."""


def clean_ip(ip: str) -> str | None:
    """Return *ip* in canonical form, or ``None`` if it is not an IP address.

    Surrounding brackets are removed, and IPv4-mapped IPv6 addresses are
    reduced to their IPv4 form.
    """
    candidate = ip.strip("[]")
    if not candidate or "%" in candidate:
        return None
    try:
        address = ipaddress.ip_address(candidate)
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        return str(address.ipv4_mapped)
    return str(address)


def _split_host_port(addr: str) -> tuple[str, str]:
    """Split ``host:port`` or ``[host]:port`` into its parts."""
    colon = addr.rfind(":")
    if colon < 0:
        raise ValueError(f"address {addr}: missing port in address")

    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise ValueError(f"address {addr}: missing ']' in address")
        if end + 1 == len(addr):
            raise ValueError(f"address {addr}: missing port in address")
        if end + 1 != colon:
            if addr[end + 1] == ":":
                raise ValueError(f"address {addr}: too many colons in address")
            raise ValueError(f"address {addr}: missing port in address")
        host = addr[1:end]
        open_from, close_from = 1, end + 1
    else:
        host = addr[:colon]
        if ":" in host:
            raise ValueError(f"address {addr}: too many colons in address")
        open_from = close_from = 0

    if "[" in addr[open_from:]:
        raise ValueError(f"address {addr}: unexpected '[' in address")
    if "]" in addr[close_from:]:
        raise ValueError(f"address {addr}: unexpected ']' in address")

    return host, addr[colon + 1:]


def get_client_ip(remote_addr: str, forwarded_for: str | None) -> str:
    """Determine the client's IP address.

    The leftmost valid entry of the ``X-Forwarded-For`` value wins; otherwise
    the remote address (with or without a port) is used.

    Raises:
        InvalidAddressError: if no valid address can be found.
    """
    if forwarded_for:
        for entry in forwarded_for.split(","):
            valid = clean_ip(entry.strip())
            if valid:
                return valid

    try:
        host, _port = _split_host_port(remote_addr)
    except ValueError as exc:
        valid = clean_ip(remote_addr)
        if valid:
            return valid
        raise InvalidAddressError(f"invalid RemoteAddr: {exc}") from exc

    valid = clean_ip(host)
    if valid:
        return valid
    raise InvalidAddressError("no valid IP address found")