# utils/errors.py

"""
Error types shared across the chat and ingestion paths.

Adapters around external services (OpenAI, Pinecone, HTTP, Resend) translate
library exceptions into ExternalServiceError subclasses, so callers can decide
per type whether to degrade or abort.
"""


class ChefBotError(Exception):
    """Base class for all application errors."""


class InputValidationError(ChefBotError):
    """Malformed user input, rejected before anything is persisted."""


class NotFoundError(ChefBotError):
    """An id that does not refer to any stored entity."""


class SessionNotFound(NotFoundError):
    def __init__(self, session_id):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class RecipeNotFound(NotFoundError):
    def __init__(self, recipe_id):
        super().__init__(f"Recipe {recipe_id} not found")
        self.recipe_id = recipe_id


class ExternalServiceError(ChefBotError):
    """A collaborator (model, vector store, web, mail) was unreachable or failed."""


class ModelInvocationError(ExternalServiceError):
    pass


class VectorStoreError(ExternalServiceError):
    pass


class PageFetchError(ExternalServiceError):
    pass


class MailDeliveryError(ExternalServiceError):
    pass
