"""Run the API with uvicorn: `python -m bookshelf`."""

import uvicorn

from bookshelf.config import settings


def main() -> None:
    uvicorn.run(
        "bookshelf.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
        # Access lines come from RequestLoggingMiddleware
        access_log=False,
    )


if __name__ == "__main__":
    main()
