class AppError(Exception):
    """Base class for all application-level errors."""
    pass


class DomainError(AppError):
    """Base for domain logic errors."""
    pass

class UnknownCollectionError(DomainError):
    def __init__(self, collection: str):
        self.collection = collection
        self.message = f"Collection '{collection}' is not paginated."
        super().__init__(self.message)

class InvalidSortFieldError(DomainError):
    def __init__(self, collection: str, field: str):
        self.collection = collection
        self.field = field
        self.message = f"Collection '{collection}' cannot be sorted by '{field}'."
        super().__init__(self.message)

class InvalidCursorError(DomainError):
    def __init__(self, detail: str):
        self.message = f"Invalid cursor: {detail}"
        super().__init__(self.message)

class SessionNotFoundError(DomainError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        self.message = f"Pagination session '{session_id}' does not exist or has expired."
        super().__init__(self.message)


class AuthorizationError(AppError):
    def __init__(self, detail: str, status_code: int = 401):
        self.status_code = status_code
        self.message = detail
        super().__init__(self.message)


class InfrastructureError(AppError):
    """Base for infrastructure-related errors (DB, API, etc)."""
    pass

class FetchError(InfrastructureError):
    def __init__(self, collection: str, detail: str = ""):
        self.collection = collection
        self.message = f"Could not fetch from collection '{collection}': {detail}"
        super().__init__(self.message)

class ExternalAPIError(InfrastructureError):
    def __init__(self, service: str, detail: str = ""):
        self.service = service
        self.message = f"Error with external service '{service}': {detail}"
        super().__init__(self.message)
