"""Error taxonomy of the messaging core.

Every error here describes a rejected request, never a corrupted persistent
state. The API layer maps ``status_code`` onto the HTTP response; ``kind`` is
the stable name clients switch on.
"""


class ChatError(Exception):
    """Base class for all messaging-core errors."""

    kind = "ChatError"
    status_code = 400

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.kind)
        self.detail = detail or self.kind


class NotMember(ChatError):
    """Caller lacks active participation in the conversation."""

    kind = "NotMember"
    status_code = 403


class PermissionDenied(ChatError):
    """Caller's role does not allow the action."""

    kind = "PermissionDenied"
    status_code = 403


class InvalidMessage(ChatError):
    """Message has neither content nor media, or content is too long."""

    kind = "InvalidMessage"
    status_code = 422


class InvalidReply(ChatError):
    """Reply target is missing or belongs to another conversation."""

    kind = "InvalidReply"
    status_code = 422


class AlreadyMember(ChatError):
    kind = "AlreadyMember"
    status_code = 409


class NotFound(ChatError):
    kind = "NotFound"
    status_code = 404


class Conflict(ChatError):
    """A concurrent write violated a uniqueness constraint."""

    kind = "Conflict"
    status_code = 409


class ValidationError(ChatError):
    kind = "ValidationError"
    status_code = 400


class Unavailable(ChatError):
    """Storage engine or collaborator failure; the operation had no effect."""

    kind = "Unavailable"
    status_code = 503
