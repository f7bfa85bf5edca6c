"""Start the FastAPI application"""

import uvicorn

from inkwell.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "inkwell.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.backend_reload,
    )
