# database.py
from flask import current_app
from flask_pymongo import PyMongo

from models.user_model import InMemoryUserStore, MongoUserStore

mongo = PyMongo()


def init_db(app):
    if app.config.get("STORAGE_BACKEND") == "memory":
        app.extensions["user_store"] = InMemoryUserStore()
        app.logger.info("Using in-memory user store")
        return

    uri = app.config.get("MONGO_URI")
    app.logger.info("Trying to connect to MongoDB: %s", uri)

    mongo.init_app(app)
    app.extensions["user_store"] = MongoUserStore(mongo.db.users)

    try:
        # Ping the server to check connection
        mongo.db.command("ping")
        app.logger.info("MongoDB connected successfully")
    except Exception as e:
        # Keep the app up; requests will fail with 500 until Mongo is reachable
        app.logger.error("MongoDB connection failed: %s", e)
        return

    # Indexes
    mongo.db.users.create_index("email", unique=True)
    app.logger.info("users collection and indexes are ready")


def get_user_store():
    return current_app.extensions["user_store"]
