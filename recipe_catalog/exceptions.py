# exceptions.py
# Domain errors raised by the catalog. main.py maps them onto HTTP responses.


class CatalogError(Exception):
    """
    Base class for every error the catalog surfaces to its callers.
    """
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(CatalogError):
    status_code = 404


class RecipeNotFoundError(NotFoundError):
    def __init__(self, recipe_id: int):
        super().__init__(f"Recipe with id: {recipe_id} does not exist in the database")
        self.recipe_id = recipe_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int):
        super().__init__(f"User with id: {user_id} does not exist in the database")
        self.user_id = user_id


class UnauthorizedError(CatalogError):
    status_code = 403


class InvalidArgumentError(CatalogError):
    status_code = 400


class PageNotFoundError(InvalidArgumentError):
    def __init__(self, page: int):
        super().__init__(f"Page {page} does not exist")
        self.page = page


class InvalidRangeError(InvalidArgumentError):
    def __init__(self, value: str):
        super().__init__(f"Invalid range '{value}', expected 'from-to'")
        self.value = value


class ConflictError(CatalogError):
    status_code = 409


class CollaboratorError(CatalogError):
    """
    An external system (image storage, token verification) failed.
    """
    status_code = 502


class ImageStorageError(CollaboratorError):
    pass


class InvalidCredentialError(CollaboratorError):
    status_code = 401
