"""Seed Redis with demo users and a group chat, and print a token per user."""

import asyncio
import os

from logging_config import get_logger, setup_logging

setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))

from backend import RedisBackend
from realtime.tokens import JWTTokenService

logger = get_logger(__name__)

DEMO_USERS = [
    {"user_id": "john", "username": "john_doe", "email": "john@example.com", "first_name": "John", "last_name": "Doe"},
    {"user_id": "jane", "username": "jane_smith", "email": "jane@example.com", "first_name": "Jane", "last_name": "Smith"},
    {"user_id": "bob", "username": "bob_wilson", "email": "bob@example.com", "first_name": "Bob", "last_name": "Wilson"},
]

DEMO_CHAT_ID = "general"


async def seed(store: RedisBackend, tokens: JWTTokenService) -> dict:
    issued = {}
    for user in DEMO_USERS:
        profile = {k: v for k, v in user.items() if k not in ("user_id", "username")}
        created = await store.create_user(user["user_id"], user["username"], **profile)
        issued[created.username] = tokens.issue(created.id)

    await store.create_chat(DEMO_CHAT_ID, [u["user_id"] for u in DEMO_USERS], name="General Discussion", is_group=True)
    logger.info(f"Seeded {len(DEMO_USERS)} users and chat '{DEMO_CHAT_ID}'")
    return issued


async def main():
    store = RedisBackend()
    if not await store.ping():
        raise SystemExit("Redis is not reachable")
    try:
        issued = await seed(store, JWTTokenService())
    finally:
        await store.close()
    for username, token in issued.items():
        print(f"{username}: ws://localhost:8000/ws?token={token}")


if __name__ == "__main__":
    asyncio.run(main())
