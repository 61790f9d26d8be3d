class RatewatchError(Exception):
    """
    RatewatchError is the base for every recoverable failure
    raised by ratewatch collaborators.
    """


class ConfigError(RatewatchError):
    """
    raised when config.toml exists but cannot be read or parsed.
    """


class AuthError(RatewatchError):
    """
    raised when auth.json exists but cannot be read or decoded.
    """


class SessionDiscoveryError(RatewatchError):
    """
    raised when the sessions directory cannot be walked.
    """


class SessionLogReadError(RatewatchError):
    """
    raised when a session log cannot be opened or read.
    """

    def __init__(self, path: "str", cause: "OSError") -> "None":
        super().__init__(f"cannot read session log {path}: {cause}")
        self.path = path
        self.cause = cause


class RateLimitFetchError(RatewatchError):
    """
    raised when the live rate-limit request fails for any reason.
    """
