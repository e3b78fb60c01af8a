import logging

from redis.asyncio import Redis
from brickbook.config import Config

logger = logging.getLogger(__name__)

# Holds the token blocklist (keys are JWT ids)
redis_client = Redis.from_url(
    Config.REDIS_URL,
    decode_responses=True
)

async def check_redis_connection():
    try:
        await redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error("Redis connection failed: %s", e)
