from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter a client requires.

    Attributes:
        env_key (str): The raw key of the setting, without the client type / engine prefix.
        val_type (str): The expected type of the value. Supported types are "string", "number", "bool" and "list".
        default (str | int | float | bool | list | None): Default if the setting is not set. If None, the setting is required.
        secret (bool): Whether the value must be masked when settings are logged.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None
    secret: bool = False
