"""Network utility functions for the Putt Party relay."""

import logging
import socket

import psutil

logger = logging.getLogger(__name__)

# Common virtual interface prefixes across platforms
VIRTUAL_INTERFACE_PREFIXES = (
    "bridge",  # VMware, Parallels bridges
    "docker",  # Docker interfaces
    "veth",  # Virtual Ethernet (Docker, LXC)
    "vmnet",  # VMware network
    "vboxnet",  # VirtualBox network
    "virbr",  # libvirt bridge
    "tun",  # VPN tunnels
    "tap",  # Virtual network tap
    "utun",  # macOS VPN tunnels
    "vnic",  # Virtual NIC
    "ppp",  # Point-to-Point Protocol (VPN)
)


def get_local_ip_addresses() -> list[str]:
    """
    Get the IPv4 addresses of physical network interfaces.

    Phones on the same LAN reach the display and the relay through one of
    these, so virtual interfaces, loopback and APIPA (169.254.x.x) are skipped.

    Returns:
        list: IP addresses as strings, e.g. ['192.168.1.100']
    """
    ip_addresses = []
    try:
        for interface_name, interface_addresses in psutil.net_if_addrs().items():
            if interface_name.lower().startswith(VIRTUAL_INTERFACE_PREFIXES):
                continue

            for address in interface_addresses:
                if address.family == socket.AF_INET:
                    ip = address.address
                    if ip != "127.0.0.1" and not ip.startswith("169.254."):
                        ip_addresses.append(ip)
    except Exception as e:
        logger.warning(f"Failed to get local IP addresses: {e}")

    return ip_addresses


def resolve_public_domain(public_domain: str | None, http_port: int) -> str:
    """Host[:port] devices should use to reach the HTTP surface.

    An explicit public_domain wins; otherwise the first LAN address is used,
    falling back to localhost.
    """
    if public_domain:
        return public_domain
    addresses = get_local_ip_addresses()
    host = addresses[0] if addresses else "localhost"
    return f"{host}:{http_port}"
