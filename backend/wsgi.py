import atexit

from visitor_stats.app import create_app
from visitor_stats.config import Settings

settings = Settings.from_env()
app = create_app(settings)
atexit.register(app.extensions["services"]["database"].close)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=settings.port)
