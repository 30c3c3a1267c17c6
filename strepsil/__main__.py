"""Run the API server: python -m strepsil"""
import uvicorn

from strepsil.config import settings


def main():
    uvicorn.run(
        "strepsil.main:app",
        host=settings.DEFAULT_HOST,
        port=settings.DEFAULT_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
