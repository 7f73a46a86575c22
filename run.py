import uvicorn

from serenity.app.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "serenity.app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
