import asyncio
import typing as t
from typing import Annotated

import httpx
import typer
from rich import print
from rich.console import Console
from rich.panel import Panel

from maxflow.cli.callbacks import json_callback, json_list_callback, match_callback
from maxflow.cli.enums import SortOrder
from maxflow.client import MaxflowClient
from maxflow.exceptions import MaxflowConfigError
from maxflow.models import FindData, MaxflowConfig, PushOptions, RunOptions
from maxflow.query import build_query, build_query_document
from maxflow.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)


def build_client() -> MaxflowClient:
    return MaxflowClient(config=MaxflowConfig.from_env())


def print_response(response: httpx.Response) -> None:
    console = Console()
    if "json" in response.headers.get("content-type", ""):
        console.print_json(data=response.json())
    else:
        console.print(response.text)


def execute(call: t.Callable[[MaxflowClient], t.Awaitable[t.Any]]) -> t.Any:
    """Run ``call`` against a fresh client and map client errors to exit codes."""

    async def _main() -> t.Any:
        async with build_client() as client:
            return await call(client)

    try:
        return asyncio.run(_main())
    except MaxflowConfigError as error:
        print(f"[red]Configuration error:[/red] {error}")
        raise typer.Exit(2)
    except httpx.HTTPStatusError as error:
        print(f"[red]Request failed ({error.response.status_code}):[/red] {error.response.text}")
        raise typer.Exit(1)
    except httpx.TransportError as error:
        print(f"[red]Transport error:[/red] {error}")
        raise typer.Exit(1)


def build_find_data(
    match: t.Any,
    page: int | None,
    page_size: int | None,
    order_by: list[str],
    order: SortOrder,
    search_text: str | None,
    search_fields: list[str],
) -> FindData:
    return FindData(
        match=match,
        page=page,
        page_size=page_size,
        order_by=[{"field": field, "order": order.value} for field in order_by] or None,
        search={"fields": search_fields, "text": search_text} if search_text else None,
    )


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("-v", "--verbose", help="Enable debug logging")
    ] = False,
):
    """Command-line client for the Maxflow API"""
    setup_logging(verbose=verbose)


@app.command(name="push")
def push_pulses(
    data: Annotated[
        list[str],
        typer.Argument(help="One or more JSON pulse payloads", callback=json_list_callback),
    ],
    debounce: Annotated[
        float | None,
        typer.Option(help="Quiet period before the queue is flushed, in milliseconds"),
    ] = None,
    max_wait: Annotated[
        float | None,
        typer.Option(help="Max time a pulse may stay queued, in milliseconds"),
    ] = None,
    immediately: Annotated[
        bool, typer.Option("--immediately", help="Send each pulse without queueing")
    ] = False,
):
    """Push pulses through the debounced queue"""
    options = PushOptions(debounce=debounce, debounce_max_wait=max_wait, immediately=immediately)

    async def _push(client: MaxflowClient) -> list[t.Any]:
        client.validate_config()
        return await asyncio.gather(
            *(client.push(payload, options) for payload in data), return_exceptions=True
        )

    results = execute(_push)
    failed = 0
    for index, result in enumerate(results):
        if isinstance(result, BaseException):
            failed += 1
            print(f"[red]pulse {index} failed:[/red] {result}")
        else:
            print(f"[green]pulse {index} sent[/green] ({result.status_code})")
    if failed:
        raise typer.Exit(1)


@app.command(name="get")
def get_pulse(pulse_id: Annotated[str, typer.Argument(help="The pulse ID")]):
    """Get a pulse by ID"""
    print_response(execute(lambda client: client.pulse.get(pulse_id)))


@app.command(name="find")
def find_pulses(
    match: Annotated[
        str | None,
        typer.Option(
            "-m",
            "--match",
            help="JSON list of {field, operator, value} or JSON object of conditions",
            callback=match_callback,
        ),
    ] = None,
    page: Annotated[int | None, typer.Option(help="Page number", rich_help_panel="Paging")] = None,
    page_size: Annotated[
        int | None, typer.Option(help="Items per page", rich_help_panel="Paging")
    ] = None,
    order_by: Annotated[
        list[str],
        typer.Option("-o", "--order-by", help="Field to order by", rich_help_panel="Ordering"),
    ] = [],
    order: Annotated[
        SortOrder, typer.Option(help="Sort order", rich_help_panel="Ordering")
    ] = SortOrder.asc,
    search_text: Annotated[
        str | None, typer.Option(help="Full-text search", rich_help_panel="Search")
    ] = None,
    search_field: Annotated[
        list[str],
        typer.Option(help="Field searched by --search-text", rich_help_panel="Search"),
    ] = [],
):
    """Search pulses"""
    find_data = build_find_data(
        match=match,
        page=page,
        page_size=page_size,
        order_by=order_by,
        order=order,
        search_text=search_text,
        search_fields=search_field,
    )
    print_response(execute(lambda client: client.pulse.find(find_data)))


@app.command(name="query")
def show_query(
    match: Annotated[
        str | None,
        typer.Option("-m", "--match", help="Same as for find", callback=match_callback),
    ] = None,
    page: Annotated[int | None, typer.Option(help="Page number")] = None,
    page_size: Annotated[int | None, typer.Option(help="Items per page")] = None,
    order_by: Annotated[list[str], typer.Option("-o", "--order-by", help="Field to order by")] = [],
    order: Annotated[SortOrder, typer.Option(help="Sort order")] = SortOrder.asc,
    search_text: Annotated[str | None, typer.Option(help="Full-text search")] = None,
    search_field: Annotated[list[str], typer.Option(help="Field searched by --search-text")] = [],
):
    """Print the encoded find query without sending it"""
    find_data = build_find_data(
        match=match,
        page=page,
        page_size=page_size,
        order_by=order_by,
        order=order,
        search_text=search_text,
        search_fields=search_field,
    )
    console = Console()
    console.print_json(data=build_query_document(find_data))
    console.print(Panel(build_query(find_data), title="o", expand=False))


@app.command(name="delete")
def delete_pulses(pulse_ids: Annotated[list[str], typer.Argument(help="Pulse IDs to delete")]):
    """Delete one or more pulses"""
    execute(lambda client: client.pulse.delete(pulse_ids))
    print(f"[green]{len(pulse_ids)} pulse(s) deleted[/green]")


@app.command(name="run")
def run_workflow(
    workflow_id: Annotated[str, typer.Argument(help="The workflow ID")],
    data: Annotated[
        str | None, typer.Option(help="JSON payload of the run", callback=json_callback)
    ] = None,
    params: Annotated[
        str | None, typer.Option(help="JSON parameters of the run", callback=json_callback)
    ] = None,
    callback_url: Annotated[
        str | None, typer.Option(help="Webhook receiving the completion event")
    ] = None,
    public: Annotated[
        bool, typer.Option("--public", help="Run a shared workflow by its public ID")
    ] = False,
):
    """Trigger a workflow run"""
    options = RunOptions(data=data, params=params, callback_url=callback_url)
    if public:
        response = execute(lambda client: client.run_public(workflow_id, options))
    else:
        response = execute(lambda client: client.run(workflow_id, options))
    print_response(response)


@app.command(name="status")
def execution_status(
    execution_id: Annotated[str, typer.Argument(help="The execution ID")],
    public_id: Annotated[
        str | None, typer.Option(help="Public ID of a shared workflow")
    ] = None,
):
    """Get the status of a workflow execution"""
    if public_id:
        response = execute(
            lambda client: client.get_execution_public_status(execution_id, public_id)
        )
    else:
        response = execute(lambda client: client.get_execution_status(execution_id))
    print_response(response)
