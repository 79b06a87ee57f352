"""SSO and CREST failure kinds.

Lower layers log through `crest_logger` and return empty sentinels. Only the login flow raises
these exceptions, and it turns the first one into a single message for the user.
"""

import logging

crest_logger = logging.getLogger("pathfinder.sso.crest")

ERROR_CCP_SSO_URL = 'Invalid "SSO_CCP_URL" url. {}'
ERROR_CCP_CREST_URL = 'Invalid "CCP_CREST_URL" url. {}'
ERROR_CCP_CLIENT_ID = 'Missing "SSO_CCP_CLIENT_ID".'
ERROR_RESOURCE_DEPRECATED = "Resource: {} has been marked as deprecated. {}"
ERROR_ACCESS_TOKEN = 'Unable to get a valid "access_token". {}'
ERROR_VERIFY_CHARACTER = "Unable to verify character data. {}"
ERROR_GET_ENDPOINT = "Unable to get endpoint data. {}"
ERROR_FIND_ENDPOINT = "Unable to find endpoint: {}"
ERROR_LOGIN_FAILED = "Failed authentication due to technical problems: {}"
ERROR_CHARACTER_FORBIDDEN = 'Character "{}" is not authorized to log in'
ERROR_CHARACTER_MISMATCH = 'The character "{}" you tried to log in, does not match'
ERROR_SERVICE_TIMEOUT = "CCP SSO service timeout ({}s). Try again later"
ERROR_STATE = "Invalid or expired login request. Please try again"
ERROR_CHARACTER_SAVE = "Unable to save character data"
ERROR_UNEXPECTED = "Login failed due to an unexpected error. Please try again"


class SsoException(Exception):
    """Base class for failures that end a login attempt."""


class ConfigurationError(SsoException):
    """An endpoint URL or the client id is missing or malformed."""

    @staticmethod
    def client_id_missing() -> "ConfigurationError":
        return ConfigurationError(ERROR_CCP_CLIENT_ID)

    @staticmethod
    def sso_url(context: str = "") -> "ConfigurationError":
        return ConfigurationError(ERROR_CCP_SSO_URL.format(context))


class TransportTimeout(SsoException):
    """The SSO did not hand out a usable token pair in time."""

    @staticmethod
    def service_timeout(timeout: int) -> "TransportTimeout":
        return TransportTimeout(ERROR_SERVICE_TIMEOUT.format(timeout))


class ProtocolError(SsoException):
    """A response was empty or malformed where data was required."""

    @staticmethod
    def verify_failed() -> "ProtocolError":
        return ProtocolError(ERROR_VERIFY_CHARACTER.format("").strip())

    @staticmethod
    def endpoint_failed() -> "ProtocolError":
        return ProtocolError(ERROR_GET_ENDPOINT.format("").strip())


class StateMismatchError(SsoException):
    @staticmethod
    def invalid_state() -> "StateMismatchError":
        return StateMismatchError(ERROR_STATE)


class IdentityMismatchError(SsoException):
    @staticmethod
    def character_mismatch(character_name: str) -> "IdentityMismatchError":
        return IdentityMismatchError(ERROR_CHARACTER_MISMATCH.format(character_name))


class AuthorizationDenied(SsoException):
    @staticmethod
    def character_forbidden(character_name: str) -> "AuthorizationDenied":
        return AuthorizationDenied(ERROR_CHARACTER_FORBIDDEN.format(character_name))


class PersistenceFailure(SsoException):
    @staticmethod
    def character_not_saved() -> "PersistenceFailure":
        return PersistenceFailure(ERROR_CHARACTER_SAVE)

    @staticmethod
    def login_failed(character_name: str) -> "PersistenceFailure":
        return PersistenceFailure(ERROR_LOGIN_FAILED.format(character_name))
