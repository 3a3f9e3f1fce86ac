import logging
import uvicorn
from uncip_backend.settings import settings

if __name__ == "__main__":

    logging.basicConfig(level=settings.LOG_LEVEL)

    uvicorn.run(
        "uncip_backend.server:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG_MODE != "production",
        workers=1,
    )
