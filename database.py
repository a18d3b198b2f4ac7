"""
Database connection helpers.

The Mongo client is opened at application startup and closed at shutdown.
Tests hand an in-memory client to the app instead of calling `open_client`.
"""

import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)


def open_client(url: Optional[str] = None) -> MongoClient:
    url = url or config.DATABASE_URL
    logger.info("Opening Mongo client")
    return MongoClient(url, serverSelectionTimeoutMS=5000)


def get_database(client: MongoClient, name: Optional[str] = None) -> Database:
    return client[name or config.DATABASE_NAME]


def close_client(client: MongoClient) -> None:
    logger.info("Closing Mongo client")
    client.close()
