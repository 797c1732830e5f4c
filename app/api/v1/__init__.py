"""
API v1 routes aggregation
"""
from fastapi import APIRouter
from app.api.v1 import users, social, conversations, messages, feed

api_router = APIRouter()

# Users & presence
api_router.include_router(users.router, prefix="/users", tags=["users"])

# Social/Friends
api_router.include_router(social.router, tags=["social"])

# Conversations
api_router.include_router(conversations.router, tags=["conversations"])

# Messages & read state
api_router.include_router(messages.router, tags=["messages"])

# Change feed
api_router.include_router(feed.router, tags=["feed"])
