import enum


class ErrorCode(enum.IntEnum):
    NONE = 0
    GENERAL = 1
    FATAL = 2
    EXCEPTION = 3
    CONFIG = 4
    PERMISSION = 5
    ACME = 8
    AUTH = 9
    KEY = 10


class WarningCode(enum.IntEnum):
    NONE = 0
    GENERAL = 100
    CONFIG = 101


class AcmeError(Exception):
    pass


class ConfigurationError(AcmeError):
    pass


class PrivateKeyError(AcmeError):
    pass


class ChallengeTimeoutError(AcmeError):
    """Authorization was still pending when the poll ceiling was reached."""

    def __init__(self, token):
        super().__init__('Timed out while waiting for the authorization status to change from pending: ' + token)
        self.token = token


class ChallengeValidationError(AcmeError):
    """Challenge reached a terminal status other than valid."""

    def __init__(self, token, status, detail=None):
        message = 'Challenge validation failed for ' + token + ', status: ' + str(status)
        if (detail):
            message += ' (' + detail + ')'
        super().__init__(message)
        self.token = token
        self.status = status
        self.detail = detail


class FinalizationError(AcmeError):
    pass
