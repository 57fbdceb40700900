from tortoise import Tortoise
from typing import Optional
from app.core import config
import logging
from logging import INFO

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger("db")

# Define all models modules for the ORM
MODELS_MODULES = [
    "app.models.order",
    "app.models.subscription",
    "app.models.notification",
    "app.models.delivery_log",
]

async def init_db(db_url: Optional[str] = None):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        await Tortoise.init(
            db_url=db_url or config.DB_URL,
            modules={"models": MODELS_MODULES},
        )
        # Generate the database schema (create tables)
        await Tortoise.generate_schemas()
        log.info("Database connection established and schemas generated.")
    except Exception as e:
        log.error(f"FATAL ERROR: Could not connect to database. Error: {e}")
        # Re-raise to prevent the application from starting without a database
        raise

async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")
