import json

import typer


def json_callback(ctx: typer.Context, value: str | None):
    if ctx.resilient_parsing or value is None:
        return
    try:
        return json.loads(value)
    except json.JSONDecodeError as error:
        raise typer.BadParameter(message=f"'{value}' is not valid JSON: {error.msg}")


def json_list_callback(ctx: typer.Context, value: list[str]):
    if ctx.resilient_parsing:
        return
    return [json_callback(ctx, item) for item in value]


def match_callback(ctx: typer.Context, value: str | None):
    if ctx.resilient_parsing or value is None:
        return
    parsed = json_callback(ctx, value)
    if not isinstance(parsed, (list, dict)):
        raise typer.BadParameter(
            message="match must be a JSON list of {field, operator, value} objects or a JSON object",
            param_hint="--match, -m",
        )
    return parsed
