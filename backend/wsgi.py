try:
    from backend.pictio.server import create_app
except ImportError:  # pragma: no cover
    from pictio.server import create_app

app, session = create_app()
session.start()
