import re
import motor.motor_asyncio
from beanie import init_beanie
from cobrafacil.database.models import (
    User,
    Client,
    Loan,
    LoanPayment,
    Employee,
    Notification,
    Bill,
    ActivityLog,
    ClientDocument,
)
from cobrafacil.core import Settings
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [User, Client, Loan, LoanPayment, Employee, Notification, Bill, ActivityLog, ClientDocument]

database = None


def _mask_mongo_uri(uri: str) -> str:
    # Show only scheme and host, never credentials
    m = re.match(r'(?P<prefix>mongodb(?:\+srv)?://)(?:(?P<creds>[^@]+)@)?(?P<rest>.+)', uri or "")
    if not m:
        return "mongodb://<redacted>"
    host_part = m.group('rest').split('/')[0]
    return f"{m.group('prefix')}***@{host_part}"


async def init_db():
    global database
    try:
        mongodb_uri = Settings.MONGODB_URI
        mongodb_db_name = Settings.MONGODB_DB_NAME

        if not mongodb_uri:
            logger.error("MONGODB_URI is not set in environment variables")
            raise ValueError("MONGODB_URI is not set in environment variables")
        if not mongodb_db_name:
            logger.error("MONGODB_DB_NAME is not set in environment variables")
            raise ValueError("MONGODB_DB_NAME is not set in environment variables")

        logger.info("Connecting to MongoDB at %s (database %s)", _mask_mongo_uri(mongodb_uri), mongodb_db_name)

        client = motor.motor_asyncio.AsyncIOMotorClient(
            mongodb_uri,
            serverSelectionTimeoutMS=30000,
            connectTimeoutMS=30000,
            socketTimeoutMS=30000,
            retryWrites=True,
        )

        await client.admin.command('ping')
        logger.info("Successfully connected to MongoDB")

        database = client[mongodb_db_name]
        await init_beanie(database, document_models=DOCUMENT_MODELS)
        logger.info("Beanie initialized with %d document models", len(DOCUMENT_MODELS))

        return database

    except ValueError as e:
        logger.error(f"Configuration error: {str(e)}")
        raise RuntimeError(f"Configuration error: {str(e)}") from e
    except Exception as e:
        logger.error(f"Database initialization failed: {repr(e)}")
        raise


def get_database():
    """Get the initialized database instance"""
    if database is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return database
