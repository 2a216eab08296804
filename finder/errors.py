class FinderError(Exception):
    pass


class ModelError(FinderError):
    """The completion backend failed for a reason not covered below."""


class ModelUnavailable(ModelError):
    """Health check or model provisioning failed."""


class ModelConnectionRefused(ModelUnavailable):
    pass


class ModelTimeout(ModelError):
    pass


class ModelMemoryExceeded(ModelError):
    """The configured model does not fit into the backend's memory."""


class IntentParseError(FinderError):
    pass


class RepositoryError(FinderError):
    pass
