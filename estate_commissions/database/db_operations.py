"""
Database operations - Generic CRUD functions for all collections
"""
from typing import List, Dict, Optional, Any
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from estate_commissions.config.database import db_config
from datetime import datetime

class DBOperations:
    """Generic database operations for MongoDB collections"""

    @staticmethod
    async def get_all(collection_name: str, filter_query: Dict = None, skip: int = 0, limit: int = 100,
                      sort: Optional[List] = None) -> List[Dict]:
        """Get all documents from a collection with optional filtering"""
        collection = db_config.get_collection(collection_name)
        filter_query = filter_query or {}
        cursor = collection.find(filter_query)
        if sort:
            cursor = cursor.sort(sort)
        cursor = cursor.skip(skip).limit(limit)
        documents = await cursor.to_list(length=limit)
        return documents

    @staticmethod
    async def get_by_id(collection_name: str, doc_id: str) -> Optional[Dict]:
        """Get a single document by ID; malformed IDs are treated as not found"""
        collection = db_config.get_collection(collection_name)
        try:
            object_id = ObjectId(doc_id)
        except (InvalidId, TypeError):
            return None
        return await collection.find_one({"_id": object_id})

    @staticmethod
    async def get_one(collection_name: str, filter_query: Dict) -> Optional[Dict]:
        """Get a single document by filter query"""
        collection = db_config.get_collection(collection_name)
        document = await collection.find_one(filter_query)
        return document

    @staticmethod
    async def create(collection_name: str, document: Dict) -> Dict:
        """Create a new document"""
        collection = db_config.get_collection(collection_name)
        document["created_at"] = datetime.utcnow()
        document["updated_at"] = datetime.utcnow()
        result = await collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    @staticmethod
    async def update_where(collection_name: str, filter_query: Dict, update_data: Dict,
                           upsert: bool = False) -> Optional[Dict]:
        """
        $set fields on the first document matching `filter_query`.
        Returns None when nothing matched, so the filter can act as a guard.
        """
        collection = db_config.get_collection(collection_name)
        update_data["updated_at"] = datetime.utcnow()
        return await collection.find_one_and_update(
            filter_query,
            {"$set": update_data},
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )

    @staticmethod
    async def increment(collection_name: str, filter_query: Dict, amounts: Dict[str, Any],
                        on_insert: Optional[Dict] = None, upsert: bool = True) -> Optional[Dict]:
        """
        Atomically add `amounts` to numeric fields of one document.
        A single $inc, so concurrent payments never lose an update.
        """
        collection = db_config.get_collection(collection_name)
        update: Dict[str, Any] = {
            "$inc": amounts,
            "$set": {"updated_at": datetime.utcnow()},
        }
        if on_insert:
            update["$setOnInsert"] = on_insert
        return await collection.find_one_and_update(
            filter_query,
            update,
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )

db_ops = DBOperations()
