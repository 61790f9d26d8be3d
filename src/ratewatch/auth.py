import enum
import json
import os
from dataclasses import dataclass

import structlog

from ratewatch.errors import AuthError

logger = structlog.get_logger()

AUTH_FILE = "auth.json"


class AuthMode(enum.Enum):
    API_KEY = "api_key"
    CHATGPT = "chatgpt"


@dataclass(frozen=True, slots=True)
class AuthCredentials:
    """
    AuthCredentials is what the login flow stored in auth.json.
    Only ChatGPT tokens grant access to the live usage endpoint.
    """

    mode: "AuthMode"
    api_key: "str" = ""
    access_token: "str" = ""
    account_id: "str" = ""

    @property
    def can_fetch_rate_limits(self) -> "bool":
        return self.mode is AuthMode.CHATGPT and bool(self.access_token)


def load_auth(codex_home: "str") -> "AuthCredentials | None":
    """
    reads <codex_home>/auth.json. Returns None when nobody is
    logged in and raises AuthError when the file is unusable.
    """
    path = os.path.join(codex_home, AUTH_FILE)
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.debug("auth_file_missing", path=path)
        return None
    except OSError as e:
        raise AuthError(f"cannot read {path}: {e}") from e
    except ValueError as e:
        raise AuthError(f"invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise AuthError(f"{path} must contain a JSON object")

    tokens = data.get("tokens")
    if isinstance(tokens, dict) and tokens.get("access_token"):
        return AuthCredentials(
            mode=AuthMode.CHATGPT,
            access_token=str(tokens["access_token"]),
            account_id=str(tokens.get("account_id") or ""),
        )

    api_key = data.get("OPENAI_API_KEY")
    if isinstance(api_key, str) and api_key:
        return AuthCredentials(mode=AuthMode.API_KEY, api_key=api_key)

    return None
