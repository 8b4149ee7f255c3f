class LineageError(Exception):
    pass


class InvalidInputError(LineageError):
    pass


class DataSourceError(LineageError):
    pass


class ProviderUnavailableError(DataSourceError):
    pass


class RateLimitError(DataSourceError):
    pass
