"""JWT revocation checks against the Redis blacklist.

Entries are written by the session service (logout, password change,
account deactivation):
  revoked:<token>        → that single token
  revoked:user:<user_id> → every token issued to the user

Both checks fail closed: if Redis cannot answer, the token is treated as
revoked and the caller is asked to authenticate again.
"""

import logging

import redis.asyncio as redis

from app.utils.redis_pool import get_redis

logger = logging.getLogger(__name__)


class TokenRevocation:
    """Read side of the token blacklist."""

    @staticmethod
    async def is_revoked(token: str) -> bool:
        redis_client = await get_redis()

        try:
            exists = await redis_client.exists(f"revoked:{token}")
            return exists > 0
        except redis.RedisError as e:
            logger.error(f"Failed to check token revocation: {e}")
            return True

    @staticmethod
    async def is_user_revoked(user_id: str) -> bool:
        """Check if all tokens for a user are revoked."""
        redis_client = await get_redis()

        try:
            exists = await redis_client.exists(f"revoked:user:{user_id}")
            return exists > 0
        except redis.RedisError as e:
            logger.error(f"Failed to check user revocation: {e}")
            return True
