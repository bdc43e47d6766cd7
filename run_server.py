import logging

import uvicorn

from launchday.config import ServerConfig

if __name__ == "__main__":
    config = ServerConfig.from_env()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logging.getLogger(__name__).info(
        "Starting Launch Day API on %s:%d (docs at /docs)", config.host, config.port
    )

    uvicorn.run(
        "launchday.api.server:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level,
        reload=False
    )
