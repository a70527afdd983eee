__all__ = [
    "RepositoryError",
    "AuthorizationFailure",
    "ResolutionFailure",
    "CopyFailure",
    "CommitFailure",
    "SessionClosedError",
]


class RepositoryError(Exception):
    """
    Base class of errors raised by a content repository adapter.
    """


class AuthorizationFailure(RepositoryError):
    """
    Raised when a privileged session cannot be acquired for a service
    identity.
    """

    def __init__(self, service_name: str, reason: str | None = None):
        self.service_name = service_name
        msg = f"Failed to acquire session for service '{service_name}'"
        super().__init__(f"{msg}: {reason}" if reason else msg)


class ResolutionFailure(RepositoryError):
    """
    Raised when a path does not resolve to a node where a mutation requires
    one.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path does not resolve to a node: {path}")


class CopyFailure(RepositoryError):
    """
    Raised when a subtree cannot be copied into a destination node.
    """

    def __init__(self, source: str, destination: str, reason: str):
        self.source = source
        self.destination = destination
        super().__init__(
            f"Failed to copy '{source}' into '{destination}': {reason}"
        )


class CommitFailure(RepositoryError):
    """
    Raised when pending mutations cannot be persisted. Mutations applied
    before the failing one are not rolled back.
    """

    errors: list[str]

    def __init__(self, errors: list[str]):
        self.errors = errors
        errors_str = "\n".join(errors)
        super().__init__(f"Errors found during commit: {errors_str}")


class SessionClosedError(RepositoryError):
    """
    Raised upon use of a session which has been logged out.
    """
