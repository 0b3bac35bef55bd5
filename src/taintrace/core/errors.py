class TracerError(Exception):
    pass


class InvalidInputError(TracerError):
    pass


class DataSourceError(TracerError):
    pass


class DataSourceTimeoutError(DataSourceError):
    pass


class RateLimitError(DataSourceError):
    pass
