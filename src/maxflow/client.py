"""
Main endpoint for users.
Exposes ``MaxflowClient``, which owns credentials, the HTTP clients and the
debounced push queue.
"""

from __future__ import annotations

import typing as t

import httpx
import structlog

from maxflow.core import PushQueue
from maxflow.exceptions import MaxflowConfigError
from maxflow.models import FindData, MaxflowConfig, PushOptions, RunOptions
from maxflow.query import QUERY_PARAM, build_query

log = structlog.get_logger(__name__)

ClientFactory = t.Callable[..., httpx.AsyncClient]

# checked in this order, the first missing one is reported
_REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("team_id", "Team ID is not set"),
    ("application_id", "Application ID is not set"),
    ("api_key", "API Key is not set"),
    ("api_secret", "API Secret is not set"),
)


class PulseAPI:
    """
    CRUD operations for pulse resources.

    Parameters
    ----------
    client : MaxflowClient
        Owning client, providing the authenticated HTTP client.
    """

    def __init__(self, *, client: MaxflowClient) -> None:
        self._client = client

    async def push(self, data: dict[str, t.Any] | list[dict[str, t.Any]]) -> httpx.Response:
        """
        Create one pulse, or several when ``data`` is a list, in one request.

        Parameters
        ----------
        data : dict[str, typing.Any] | list[dict[str, typing.Any]]
            Pulse payload(s).

        Returns
        -------
        httpx.Response
            Service response.
        """
        return await self._client._request("POST", "/api/pulse", json=data)

    create = push

    async def get(self, pulse_id: str) -> httpx.Response:
        return await self._client._request("GET", f"/api/pulse/{pulse_id}")

    async def find(self, find_data: FindData | t.Mapping[str, t.Any]) -> httpx.Response:
        """
        Search pulses.

        Parameters
        ----------
        find_data : FindData | typing.Mapping[str, typing.Any]
            Filter descriptor, serialized into the ``o`` query parameter.

        Returns
        -------
        httpx.Response
            Service response.
        """
        encoded = build_query(find_data)
        return await self._client._request("GET", f"/api/pulse/?{QUERY_PARAM}={encoded}")

    async def delete(self, pulse_id: str | list[str]) -> httpx.Response:
        pulse_ids = pulse_id if isinstance(pulse_id, list) else [pulse_id]
        return await self._client._request("DELETE", "/api/pulse", json=pulse_ids)

    async def update(self, pulse_id: str, data: dict[str, t.Any]) -> httpx.Response:
        return await self._client._request("PUT", f"/api/pulse/{pulse_id}", json=data)


class MaxflowClient:
    """
    Async client for the Maxflow API.

    Parameters
    ----------
    config : MaxflowConfig | None, optional
        Client configuration. Credentials may also be set later with the
        fluent setters.

    Notes
    -----
    Each client owns its own push queue and timers; clients never share
    state.
    """

    def __init__(self, config: MaxflowConfig | None = None) -> None:
        self._config = config.model_copy() if config is not None else MaxflowConfig()
        self._client_factory: ClientFactory = httpx.AsyncClient
        self._http_client: httpx.AsyncClient | None = None
        self._public_http_client: httpx.AsyncClient | None = None
        self.pulse = PulseAPI(client=self)
        self._queue = PushQueue(
            send=self.pulse.push,
            queue_delay=self._config.queue_delay,
            max_queue_time=self._config.max_queue_time,
        )

    @property
    def config(self) -> MaxflowConfig:
        return self._config

    @property
    def queue(self) -> PushQueue:
        return self._queue

    def set_api_key(self, key: str, secret: str) -> MaxflowClient:
        self._config.api_key = key
        self._config.api_secret = secret
        return self

    def set_team_id(self, team_id: str) -> MaxflowClient:
        self._config.team_id = team_id
        return self

    def set_application_id(self, application_id: str) -> MaxflowClient:
        self._config.application_id = application_id
        return self

    def set_base_url(self, url: str) -> MaxflowClient:
        self._config.base_url = url
        return self

    def validate_config(self) -> None:
        """
        Ensure every credential needed for authenticated calls is set.

        Raises
        ------
        MaxflowConfigError
            If a credential is missing.
        """
        for field_name, message in _REQUIRED_FIELDS:
            if not getattr(self._config, field_name):
                raise MaxflowConfigError(field=field_name, message=message)

    def _auth_headers(self) -> dict[str, str]:
        return {
            "x-api-key": t.cast(str, self._config.api_key),
            "x-api-secret": t.cast(str, self._config.api_secret),
            "x-max-team-id": t.cast(str, self._config.team_id),
            "x-max-application-id": t.cast(str, self._config.application_id),
        }

    def _http(self, auth: bool = True) -> httpx.AsyncClient:
        """
        Return the HTTP client, creating it on first use.

        Parameters
        ----------
        auth : bool, optional
            If ``False``, return the client used for public endpoints, which
            only carries the team header.

        Returns
        -------
        httpx.AsyncClient
            Configured HTTP client.
        """
        if not auth:
            if self._public_http_client is None:
                self._public_http_client = self._client_factory(
                    base_url=self._config.base_url,
                    timeout=self._config.timeout,
                )
            client = self._public_http_client
            client.headers["x-max-team-id"] = self._config.team_id or ""
        else:
            if self._http_client is None:
                self.validate_config()
                self._http_client = self._client_factory(
                    base_url=self._config.base_url,
                    timeout=self._config.timeout,
                )
                log.debug(event="Created HTTP client", base_url=self._config.base_url)
            client = self._http_client
            # credentials can change through the setters after creation
            client.headers.update(self._auth_headers())
        client.base_url = self._config.base_url
        return client

    async def _request(
        self, method: str, url: str, auth: bool = True, **kwargs: t.Any
    ) -> httpx.Response:
        """
        Send a request and raise on non-2xx responses.

        Parameters
        ----------
        method : str
            HTTP method.
        url : str
            Path relative to the base URL.
        auth : bool, optional
            Whether to use the authenticated client.
        **kwargs : typing.Any
            Forwarded to ``httpx.AsyncClient.request``.

        Returns
        -------
        httpx.Response
            Successful response.
        """
        response = await self._http(auth=auth).request(method, url, **kwargs)
        log.debug(
            event="Request completed",
            method=method,
            path=response.request.url.path,
            status_code=response.status_code,
        )
        response.raise_for_status()
        return response

    async def push(
        self,
        data: t.Any,
        options: PushOptions | t.Mapping[str, t.Any] | None = None,
    ) -> httpx.Response:
        """
        Queue a pulse, or send it right away with ``immediately``.

        Parameters
        ----------
        data : typing.Any
            Pulse payload.
        options : PushOptions | typing.Mapping[str, typing.Any] | None, optional
            ``debounce`` and ``debounce_max_wait`` (milliseconds) override the
            queue timing; ``immediately`` bypasses the queue.

        Returns
        -------
        httpx.Response
            Response of the request that carried this pulse.

        Raises
        ------
        MaxflowConfigError
            If credentials are missing, before anything is queued.
        """
        self.validate_config()
        return await self._queue.enqueue(data, options)

    async def run(
        self, workflow_id: str, options: RunOptions | t.Mapping[str, t.Any] | None = None
    ) -> httpx.Response:
        """
        Trigger a workflow run.

        Parameters
        ----------
        workflow_id : str
            Workflow identifier.
        options : RunOptions | typing.Mapping[str, typing.Any] | None, optional
            Run payload, parameters and completion webhook.

        Returns
        -------
        httpx.Response
            Service response.
        """
        run_options = RunOptions.model_validate(options or {})
        return await self._request(
            "POST",
            f"/api/workflow/run/{workflow_id}",
            params=self._callback_params(run_options=run_options),
            json={"params": run_options.params, "data": run_options.data},
        )

    async def run_public(
        self, public_id: str, options: RunOptions | t.Mapping[str, t.Any] | None = None
    ) -> httpx.Response:
        """Trigger a shared workflow run without authentication."""
        run_options = RunOptions.model_validate(options or {})
        return await self._request(
            "POST",
            f"/api/integration/{self._config.team_id}/{public_id}",
            auth=False,
            params=self._callback_params(run_options=run_options),
            json={"params": run_options.params, "data": run_options.data},
        )

    async def get_execution_status(self, execution_id: str) -> httpx.Response:
        return await self._request("GET", "/api/workflow/log", params={"logId": execution_id})

    async def get_execution_public_status(
        self, execution_id: str, public_id: str
    ) -> httpx.Response:
        return await self._request(
            "GET",
            "/api/workflow/log",
            auth=False,
            params={"logId": execution_id, "publicId": public_id},
        )

    @staticmethod
    def _callback_params(*, run_options: RunOptions) -> dict[str, str]:
        if run_options.callback_url:
            return {"callbackUrl": run_options.callback_url}
        return {}

    async def aclose(self) -> None:
        """
        Drain the push queue, then close the HTTP clients.
        """
        await self._queue.close()
        for client in (self._http_client, self._public_http_client):
            if client is not None:
                await client.aclose()
        self._http_client = None
        self._public_http_client = None
        log.debug(event="MaxflowClient closed")

    async def __aenter__(self) -> MaxflowClient:
        return self

    async def __aexit__(self, *_: t.Any) -> None:
        await self.aclose()
