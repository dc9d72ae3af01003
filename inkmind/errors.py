# errors.py
"""
Domain exceptions for InkMind.

Domain code raises these; `server.py` maps them onto HTTP responses with a
single exception handler, so routers do not translate them one by one.
"""

from fastapi import status


class InkMindError(Exception):
    """Base class for every domain error."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(InkMindError):
    """Malformed input for a create or update."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(InkMindError):
    """The design does not exist or is not visible to the caller."""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, design_id, detail: str = None):
        super().__init__(detail or f"Design {design_id} not found.")
        self.design_id = design_id


class ImmutableFieldError(InkMindError):
    """An update tried to change a write-once field."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str):
        super().__init__(f"Field '{field}' cannot be changed after creation.")
        self.field = field


class CycleDetectedError(InkMindError):
    """The parent chain revisits a design: the stored history is corrupt."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, design_id):
        super().__init__("Design history unavailable.")
        self.design_id = design_id


class NotReadyError(InkMindError):
    """The design has no rendered image yet."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, design_id):
        super().__init__("This design isn't finished yet.")
        self.design_id = design_id


class GenerationError(InkMindError):
    """The image generation service failed or returned no image."""
    status_code = status.HTTP_502_BAD_GATEWAY


class StorageError(InkMindError):
    """The blob store rejected an upload or delete."""
    status_code = status.HTTP_502_BAD_GATEWAY
