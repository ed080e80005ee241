import os
import typing as t

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

log = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://app.gomaxflow.ai"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_QUEUE_DELAY_MS = 360
DEFAULT_MAX_QUEUE_TIME_MS = 1000

ENV_PREFIX = "MAXFLOW_"


class MaxflowConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    api_key: str | None = Field(default=None, description="public API key")
    api_secret: str | None = Field(default=None, description="secret key for secure endpoints")
    team_id: str | None = Field(default=None, description="team identifier")
    application_id: str | None = Field(default=None, description="application identifier")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="base URL for API requests")
    timeout: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="HTTP timeout in seconds"
    )
    queue_delay: float = Field(
        default=DEFAULT_QUEUE_DELAY_MS,
        ge=0,
        description="default quiet period before a queued push is sent, in milliseconds",
    )
    max_queue_time: float = Field(
        default=DEFAULT_MAX_QUEUE_TIME_MS,
        ge=0,
        description="default upper bound on how long a push may stay queued, in milliseconds",
    )

    @classmethod
    def from_env(cls, override: bool = False, **overrides: t.Any) -> "MaxflowConfig":
        """
        Build a configuration from ``MAXFLOW_*`` environment variables.

        A ``.env`` file in the working directory is loaded first.

        Parameters
        ----------
        override : bool, optional
            If ``True``, values from ``.env`` replace already-set variables.
        **overrides : typing.Any
            Explicit values taking precedence over the environment.

        Returns
        -------
        MaxflowConfig
            Loaded configuration.
        """
        load_dotenv(override=override)
        values: dict[str, t.Any] = {}
        for name in cls.model_fields:
            value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                values[name] = value
        values.update({key: value for key, value in overrides.items() if value is not None})
        log.debug(event="Loaded configuration from environment", fields=sorted(values))
        return cls.model_validate(values)


class PushOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    debounce: float | None = Field(
        default=None, ge=0, description="quiet period before the queue is flushed, in milliseconds"
    )
    debounce_max_wait: float | None = Field(
        default=None,
        ge=0,
        description="max time before flush, only read from the first item of a batch, in milliseconds",
    )
    immediately: bool = Field(default=False, description="send without queueing")


class RunOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: t.Any = None
    params: t.Any = None
    callback_url: str | None = Field(default=None, alias="callbackUrl")


class MatchCondition(BaseModel):
    field: str
    operator: str
    value: t.Any = None


class OrderBy(BaseModel):
    field: str
    order: str | None = None
    direction: int | float | None = None


class SearchSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    fields: list[str]
    text: str


class FindData(BaseModel):
    """
    Filter descriptor for ``pulse.find``.

    ``match`` is either a list of ``{field, operator, value}`` conditions or a
    mapping of field name to a ready-made condition object.
    """

    model_config = ConfigDict(populate_by_name=True)

    match: list[MatchCondition] | dict[str, t.Any] | None = None
    page: int | None = None
    page_size: int | None = Field(default=None, alias="pageSize")
    order_by: list[OrderBy] | None = Field(default=None, alias="orderBy")
    search: SearchSpec | None = None


push_options_adapter = TypeAdapter(PushOptions | None)
