import os
import tomllib
from dataclasses import dataclass, field

from ratewatch.client.chatgpt import CHATGPT_BASE_URL
from ratewatch.errors import ConfigError

CONFIG_FILE = "config.toml"
DEFAULT_MODEL_PROVIDER_ID = "openai"

# display names for the built-in providers; custom ones come
# from [model_providers.<id>] name = "..."
_BUILTIN_PROVIDER_NAMES: "dict[str, str]" = {
    "openai": "OpenAI",
    "oss": "gpt-oss",
}


def _default_codex_home() -> "str":
    return os.path.join(os.path.expanduser("~"), ".codex")


@dataclass
class Config:
    # agent home directory holding config.toml, auth.json
    # and the sessions/ tree
    codex_home: "str" = field(default_factory=_default_codex_home)
    cwd: "str" = field(default_factory=os.getcwd)
    # None means the agent's built-in default model
    model: "str | None" = None
    model_provider_id: "str" = DEFAULT_MODEL_PROVIDER_ID
    model_provider_name: "str" = ""
    approval_policy: "str" = "on-request"
    sandbox_mode: "str" = "read-only"
    sandbox_network_access: "bool" = False
    chatgpt_base_url: "str" = CHATGPT_BASE_URL
    live_fetch: "bool" = True
    log_level: "str" = "warning"

    @classmethod
    def from_env(cls) -> "Config":
        codex_home = os.environ.get("CODEX_HOME", "")
        if codex_home:
            return cls(codex_home=os.path.expanduser(codex_home))
        return cls()

    def load_file(self) -> "None":
        """
        merges <codex_home>/config.toml into this config. A missing
        file leaves the defaults untouched.
        """
        path = os.path.join(self.codex_home, CONFIG_FILE)
        try:
            with open(path, "rb") as handle:
                data = tomllib.load(handle)
        except FileNotFoundError:
            return
        except OSError as e:
            raise ConfigError(f"cannot read {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"invalid TOML in {path}: {e}") from e

        if isinstance(data.get("model"), str):
            self.model = data["model"]
        if isinstance(data.get("model_provider"), str):
            self.model_provider_id = data["model_provider"]
        if isinstance(data.get("approval_policy"), str):
            self.approval_policy = data["approval_policy"]
        if isinstance(data.get("sandbox_mode"), str):
            self.sandbox_mode = data["sandbox_mode"]
        if isinstance(data.get("chatgpt_base_url"), str):
            self.chatgpt_base_url = data["chatgpt_base_url"]

        workspace_write = data.get("sandbox_workspace_write")
        if isinstance(workspace_write, dict):
            self.sandbox_network_access = bool(
                workspace_write.get("network_access", False)
            )

        providers = data.get("model_providers")
        if isinstance(providers, dict):
            provider = providers.get(self.model_provider_id)
            if isinstance(provider, dict) and isinstance(provider.get("name"), str):
                self.model_provider_name = provider["name"]

    @property
    def provider_display_name(self) -> "str":
        name = self.model_provider_name.strip()
        if name:
            return name
        return _BUILTIN_PROVIDER_NAMES.get(
            self.model_provider_id, self.model_provider_id
        )

    @property
    def is_default_provider(self) -> "bool":
        return self.model_provider_id == DEFAULT_MODEL_PROVIDER_ID

    @property
    def sandbox_display(self) -> "str":
        if self.sandbox_mode == "workspace-write" and self.sandbox_network_access:
            return "workspace-write (network access enabled)"
        return self.sandbox_mode
