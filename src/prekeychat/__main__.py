"""Run the relay: python -m prekeychat"""

import logging

import uvicorn

from .api import create_app
from .client import SecureClient
from .config import get_settings
from .relay import RelayService

logger = logging.getLogger("prekeychat")


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Identity generation failure here is fatal; let it propagate
    client = SecureClient(settings.local_name, device_id=settings.device_id)
    relay = RelayService(client, remote_name=settings.remote_name)
    app = create_app(relay)

    logger.info("Relay for %s <-> %s on http://%s:%d", settings.local_name, settings.remote_name, settings.host, settings.port)
    logger.info("GET  /local/prekey       -> local pre-key bundle")
    logger.info("POST /remote/prekey      -> register remote pre-key bundle")
    logger.info("POST /messages/inbound   -> decrypt envelope from remote")
    logger.info("POST /messages/outbound  -> encrypt and queue message for remote")
    logger.info("GET  /messages/outbound  -> drain envelopes queued for remote")

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
