class ModerationError(Exception):
    """Base class for every error raised by the moderation workflow."""


class SubmissionValidationError(ModerationError):
    """Malformed submission payload; nothing was written."""


class PreconditionError(ModerationError):
    """Transition attempted on a submission that is no longer pending."""


class PermissionDenied(ModerationError):
    pass


class RemoteFailure(ModerationError):
    """The store (or the service behind a client) could not complete the call."""


class SubmissionNotFound(RemoteFailure):
    pass


class ProductNotFound(RemoteFailure):
    pass


class TargetProductNotFound(ProductNotFound):
    """The product a modify/delete submission points at no longer exists."""


ERRORS_BY_CODE: dict[str, type[ModerationError]] = {
    cls.__name__: cls
    for cls in (
        ModerationError,
        SubmissionValidationError,
        PreconditionError,
        PermissionDenied,
        RemoteFailure,
        SubmissionNotFound,
        ProductNotFound,
        TargetProductNotFound,
    )
}
