import secrets

from fastapi import Request

from serenity.app.exceptions import AuthenticationError

SECRET_HEADER = "x-app-secret"


def verify_app_secret(request: Request, expected: str) -> None:
    """Check the shared secret header.

    An empty configured secret rejects every request rather than accepting
    callers that send an empty header.

    Raises:
        AuthenticationError: If the header is missing or does not match
    """
    provided = request.headers.get(SECRET_HEADER)
    if not expected or provided is None:
        raise AuthenticationError()
    if not secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise AuthenticationError()
