"""
Database helpers

MongoDB access shared by the API. Each collection is named after the
lowercased schema class (Product -> "product").
"""
import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient

from errors import NetworkError

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

db = None
if DATABASE_URL:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]
else:
    logger.warning("DATABASE_URL is not set; database calls will fail")


def _require_db():
    if db is None:
        raise NetworkError("Database is not configured")
    return db


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert one document, stamping created_at/updated_at, and return its id."""
    database = _require_db()
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    doc.pop("id", None)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    res = database[collection_name].insert_one(doc)
    return str(res.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    database = _require_db()
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    docs = []
    for d in cursor:
        d["id"] = str(d.pop("_id"))
        docs.append(d)
    return docs
