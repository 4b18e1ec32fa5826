import logging

import uvicorn

from app.core.config import get_settings
from app.main import app

settings = get_settings()

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

logger.info("api/index.py initialized (environment=%s)", settings.environment)

# Process entry point; exports the FastAPI app instance for ASGI servers.

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
