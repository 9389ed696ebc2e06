import logging
import socket

logger = logging.getLogger(__name__)


class Reachability:
    """Cheap TCP probe used to decide whether narration is worth attempting."""

    def __init__(self, host: str = "8.8.8.8", port: int = 53, timeout: float = 1.5):
        self.host = host
        self.port = port
        self.timeout = timeout

    def is_online(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError as exc:
            logger.debug("Reachability probe to %s:%s failed: %s", self.host, self.port, exc)
            return False
