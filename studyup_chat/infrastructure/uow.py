# studyup_chat/infrastructure/uow.py
from typing import Any, Dict, Type

from studyup_chat.infrastructure.data_mappers import DataMapper


class UoWModel:
    """Proxy that marks its model dirty on attribute assignment."""

    def __init__(self, model: Any, uow: "UnitOfWork"):
        self.__dict__["_model"] = model
        self.__dict__["_uow"] = uow

    def __getattr__(self, key):
        return getattr(self._model, key)

    def __setattr__(self, key, value):
        setattr(self._model, key, value)
        # pending inserts already carry the new value
        if id(self._model) not in self._uow.new:
            self._uow.register_dirty(self._model)


class UnitOfWork:
    """Tracks new and modified models and writes them through their mappers.

    Conversations and messages are never deleted by this service, so there is
    no deleted set.
    """

    def __init__(self) -> None:
        self.new: Dict[int, Any] = {}
        self.dirty: Dict[int, Any] = {}
        self.mappers: Dict[Type, DataMapper] = {}

    def register_new(self, model: Any) -> UoWModel:
        if isinstance(model, UoWModel):
            model = model._model
        model_id = id(model)
        self.new[model_id] = model
        self.dirty.pop(model_id, None)
        return UoWModel(model, self)

    def register_dirty(self, model: Any) -> None:
        if isinstance(model, UoWModel):
            model = model._model
        model_id = id(model)
        if model_id not in self.new:
            self.dirty[model_id] = model

    async def commit(self) -> None:
        for model in self.new.values():
            await self.mappers[type(model)].insert(model)
        for model in self.dirty.values():
            await self.mappers[type(model)].update(model)

        self.new.clear()
        self.dirty.clear()

    def rollback(self) -> None:
        self.new.clear()
        self.dirty.clear()
