from app.core.security import create_access_token
from app.models.enums import ConversationType
from app.services.conversation_service import conversation_service
from app.services.social_service import social_service


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def befriend(db, user_a: str, user_b: str):
    request, _, _ = social_service.send_friend_request(db, user_a, friend_user_id=user_b)
    _, friendship = social_service.respond_to_request(db, user_b, request.id, accept=True)
    return friendship


def direct_chat(db, user_a: str, user_b: str):
    befriend(db, user_a, user_b)
    conversation, _ = conversation_service.create_conversation(db, user_a, ConversationType.DIRECT, [user_b])
    return conversation


def group_chat(db, owner: str, members, name: str = "Team"):
    conversation, _ = conversation_service.create_conversation(
        db, owner, ConversationType.GROUP, list(members), name=name
    )
    return conversation
