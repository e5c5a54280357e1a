# studyup_chat/interactors/user_interactor.py
from typing import Optional

from studyup_chat.gateways.user_gateway import UserGateway
from studyup_chat.infrastructure import schemas


class UserInteractor:
    def __init__(self, user_gateway: UserGateway):
        self.user_gateway = user_gateway

    async def get_user(self, user_id: str) -> Optional[schemas.User]:
        user = await self.user_gateway.get_user(user_id)
        return schemas.User.model_validate(user) if user else None

    async def get_active_user(self, user_id: str) -> Optional[schemas.User]:
        user = await self.get_user(user_id)
        if user is None or not user.is_active:
            return None
        return user
