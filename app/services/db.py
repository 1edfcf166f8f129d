from typing import Any, Dict, Optional

import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from app.models.ai_settings import load_settings
from app.models.models import MatchScoreRecord
from app.utils.exceptions import DatabaseError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

HIGH_SCORE_THRESHOLD = 80
RECENT_LIMIT = 10

_settings = load_settings()

logger.info(f"Initializing MongoDB connection to database: {_settings.db_name}")

# Initialize client (connects lazily on first operation)
client = motor.motor_asyncio.AsyncIOMotorClient(_settings.mongo_details)
db = client[_settings.db_name]

# Collections
match_scores_coll = db["match_scores"]


async def init_indexes(collection=None):
    """Index initialization for the match score collection."""
    coll = collection if collection is not None else match_scores_coll
    logger.info("Starting database index initialization")

    try:
        await coll.create_index([("submission_id", ASCENDING)], unique=True)
        logger.debug("Created unique index on match_scores.submission_id")
    except PyMongoError as e:
        if "already exists" in str(e).lower():
            logger.debug("Index on match_scores.submission_id already exists")
        else:
            logger.warning(f"Could not create unique index on match_scores.submission_id: {e}")

    try:
        await coll.create_index([("overall_score", DESCENDING)])
        await coll.create_index([("created_at", DESCENDING)])
        logger.debug("Created additional indexes on match_scores collection")
    except PyMongoError as e:
        logger.warning(f"Could not create some match_scores indexes: {e}")

    logger.info("Database index initialization completed")


def to_dict(doc):
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return doc


class MatchScoreStore:
    """One match score document per submission_id."""

    def __init__(self, collection=None):
        self.collection = collection if collection is not None else match_scores_coll

    async def save(self, record: MatchScoreRecord) -> None:
        doc = record.model_dump(mode="json")
        doc["created_at"] = record.created_at
        try:
            await self.collection.replace_one({"submission_id": record.submission_id}, doc, upsert=True)
        except PyMongoError as e:
            raise DatabaseError(
                f"Failed to save match score: {e}", operation="save", collection="match_scores", cause=e
            ) from e
        logger.info(f"Saved match score {record.overall_score} for submission {record.submission_id}")

    async def get_by_submission(self, submission_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self.collection.find_one({"submission_id": submission_id})
        except PyMongoError as e:
            raise DatabaseError(
                f"Failed to read match score: {e}", operation="find_one", collection="match_scores", cause=e
            ) from e
        return to_dict(doc)

    async def get_analysis_stats(self) -> Dict[str, Any]:
        pipeline = [
            {"$group": {
                "_id": None,
                "total": {"$sum": 1},
                "high_scores": {"$sum": {"$cond": [{"$gte": ["$overall_score", HIGH_SCORE_THRESHOLD]}, 1, 0]}},
                "average": {"$avg": "$overall_score"},
            }}
        ]
        try:
            rows = await self.collection.aggregate(pipeline).to_list(length=1)
            recent = await (
                self.collection.find({}, {"_id": 0, "submission_id": 1, "overall_score": 1,
                                          "match_level": 1, "source": 1, "created_at": 1})
                .sort("created_at", DESCENDING)
                .limit(RECENT_LIMIT)
                .to_list(length=RECENT_LIMIT)
            )
        except PyMongoError as e:
            raise DatabaseError(
                f"Failed to aggregate match scores: {e}", operation="aggregate", collection="match_scores", cause=e
            ) from e

        row = rows[0] if rows else {}
        total = row.get("total", 0)
        high = row.get("high_scores", 0)
        return {
            "total_analyses": total,
            "high_score_matches": high,
            "average_score": round(row.get("average") or 0, 1),
            "high_score_percentage": round(high / total * 100, 1) if total else 0.0,
            "recent_analyses": recent,
        }
