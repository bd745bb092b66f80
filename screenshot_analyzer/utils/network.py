import logging
import socket

logger = logging.getLogger(__name__)

FALLBACK_IP = "127.0.0.1"


def get_local_ip() -> str:
    """
    Best-effort LAN address of this machine.

    Opens a UDP socket towards a public address (no packets are sent) and reads
    back the local address the OS picked. Falls back to loopback.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
    except OSError as e:
        logger.debug(f"Could not determine local IP, using {FALLBACK_IP}: {e}")
        return FALLBACK_IP
