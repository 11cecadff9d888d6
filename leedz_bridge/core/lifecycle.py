"""
Process lifecycle shared by the translator and mailer daemons.
"""

import logging
from typing import Callable, Iterable, Optional

from .control_plane import ControlPlane, Role
from .protocol import ToolServer
from .transport import LineTransport

logger = logging.getLogger(__name__)


def run_daemon(
    server: ToolServer,
    control_plane: Optional[ControlPlane] = None,
    transport: Optional[LineTransport] = None,
    cleanup: Iterable[Callable[[], None]] = (),
) -> int:
    """
    Serve one tool server until stdin closes or SIGINT arrives.

    The control plane is started first; losing the port to another
    instance is not fatal, the daemon then serves stdio as secondary.

    Returns:
        Process exit code (0)
    """
    transport = transport or LineTransport()

    if control_plane is not None:
        try:
            role = control_plane.start()
        except OSError as e:
            logger.error(f"HTTP control plane unavailable: {e}")
        else:
            if role is Role.SECONDARY:
                logger.warning(
                    f"{server.name} running as secondary; primary is {control_plane.base_url}"
                )

    logger.info(f"{server.name} ready - listening for JSON-RPC requests")
    try:
        server.serve(transport)
    except KeyboardInterrupt:
        logger.info(f"Shutting down {server.name}...")
    finally:
        transport.close()
        if control_plane is not None:
            control_plane.stop()
        for callback in cleanup:
            callback()

    logger.info(f"{server.name} stopped")
    return 0
