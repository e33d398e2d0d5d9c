"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class DatabaseError(ServiceError):
    pass


class RuleValidationError(ServiceError):
    pass


class AppNotFound(ServiceError):
    pass


class RuleNotFound(ServiceError):
    pass
