import json
import logging
from typing import List, Optional
import redis
from exampractice.core.config import REDIS_URL, EXAM_CACHE_TTL

logger = logging.getLogger(__name__)

redis_client = redis.Redis.from_url(REDIS_URL, decode_responses=True)

def exam_questions_key(exam_id: str) -> str:
    return f"exam:{exam_id}:questions"

def remember_exam_questions(exam_id: str, question_ids: List[str]) -> None:
    # order is fixed once materialized
    try:
        redis_client.set(exam_questions_key(exam_id), json.dumps(question_ids), ex=EXAM_CACHE_TTL)
    except redis.RedisError as e:
        logger.warning(f"Could not cache question order for exam {exam_id}: {e}")

def cached_exam_questions(exam_id: str) -> Optional[List[str]]:
    try:
        raw = redis_client.get(exam_questions_key(exam_id))
    except redis.RedisError as e:
        logger.warning(f"Question order cache unavailable for exam {exam_id}: {e}")
        return None
    return json.loads(raw) if raw else None
