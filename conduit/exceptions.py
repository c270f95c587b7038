"""
Domain errors raised by the service layer.

Services raise these instead of returning ``None`` so that "not found" and
"not allowed" reach the caller as distinct failures.  ``main.py`` maps every
``ConduitError`` to a JSON response using the class's ``status_code``.
"""


class ConduitError(Exception):
    status_code: int = 400
    detail: str = "Bad request"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class NotFoundError(ConduitError):
    status_code = 404
    detail = "Not found"


class ArticleNotFoundError(NotFoundError):
    detail = "Article does not exist"


class UserNotFoundError(NotFoundError):
    detail = "User does not exist"


class ForbiddenError(ConduitError):
    status_code = 403
    detail = "Forbidden"


class NotArticleAuthorError(ForbiddenError):
    detail = "You are not the author of this article"


class InvalidCredentialsError(ConduitError):
    status_code = 422
    detail = "Credentials are not valid"
