# studyup_chat/domain/errors.py


class ChatNotFoundError(ValueError):
    pass


class ChatAccessError(ValueError):
    """Raised when a user acts on a conversation they do not take part in."""


class InvalidMessageError(ValueError):
    pass
