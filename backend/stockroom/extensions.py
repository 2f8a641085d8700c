# Overview: Flask extension instances for the database, migrations and the audit queue client.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import redis

db = SQLAlchemy()
migrate = Migrate()


def get_redis() -> redis.Redis:
    """
    Return the app-scoped Redis client, creating it on first use.

    The client is cached in app.extensions so every request shares one
    connection pool.
    """
    client = current_app.extensions.get("redis")
    if client is None:
        client = redis.Redis.from_url(
            current_app.config["REDIS_URL"],
            decode_responses=True,
            socket_connect_timeout=current_app.config["REDIS_CONNECT_TIMEOUT"],
            socket_timeout=current_app.config["REDIS_CONNECT_TIMEOUT"],
        )
        current_app.extensions["redis"] = client
    return client
