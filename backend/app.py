import logging
import os

from pathlib import Path

from dotenv import load_dotenv


def main() -> None:
    load_dotenv(Path(__file__).resolve().parents[1] / ".env")

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(levelname)s - [%(name)s] - %(message)s",
    )

    try:
        from backend.pictio.server import create_app
    except ImportError:  # pragma: no cover
        from pictio.server import create_app

    app, session = create_app()
    config = session.config

    if config.HTTP_PORT <= 0:
        session.serve_forever()
        return

    session.start()
    debug = os.environ.get("FLASK_DEBUG", "0") == "1"
    try:
        # The reloader would fork a second game server.
        app.run(host=config.HOST, port=config.HTTP_PORT, debug=debug, use_reloader=False, threaded=True)
    finally:
        session.shutdown()


if __name__ == "__main__":
    main()
