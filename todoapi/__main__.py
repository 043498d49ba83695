import uvicorn

from .core.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "todoapi.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
    )


if __name__ == "__main__":
    main()
