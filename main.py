# main.py — lance l'API (uvicorn)
import logging

import uvicorn

from config import settings


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    uvicorn.run("webhook_app:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
