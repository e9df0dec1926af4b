"""GPIO to MQTT bridge daemon."""

import logging
import sys

__version__ = "0.3.0"

logger = logging.getLogger(__name__)


def _check_dependencies():
    """Exit when the installed paho-mqtt lacks the 2.x callback API."""
    try:
        import paho.mqtt as paho_mqtt
        from paho.mqtt import client as paho_client
    except ImportError:
        return

    if getattr(paho_client, "CallbackAPIVersion", None) is None:
        logger.critical(
            "paho-mqtt %s is too old for aiomqtt; install paho-mqtt>=2.0.",
            getattr(paho_mqtt, "__version__", "unknown"),
        )
        sys.exit(1)


_check_dependencies()
