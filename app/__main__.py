"""Run the overlay API with uvicorn."""

import uvicorn

from app import create_app
from app.core.config import settings


def main() -> None:
    uvicorn.run(create_app(), host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
