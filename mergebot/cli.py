"""mergebot CLI entry point using Click.

Commands:
    mergebot serve [--host H] [--port N] [--path P]   — run the webhook receiver
    mergebot config                                   — show resolved settings (token masked)

Settings are read from ``MERGEBOT_*`` environment variables and the optional
``--config`` YAML file; command-line options override both.
"""

from pathlib import Path

import click
import yaml

from mergebot.config import ConfigError, Settings, apply_overrides, load_settings


def _load(ctx: click.Context) -> Settings:
    try:
        return load_settings(ctx.obj.get("config_file") if ctx.obj else None)
    except ConfigError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option(
    "--config", "config_file", type=click.Path(path_type=Path, dir_okay=False), default=None,
    envvar="MERGEBOT_CONFIG",
    help="YAML config file (environment variables take precedence).",
)
@click.pass_context
def main(ctx: click.Context, config_file: Path | None) -> None:
    """mergebot — serialized squash-merging of GitHub pull requests."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


@main.command()
@click.option("--host", type=str, default=None, help="Bind address (default: 0.0.0.0).")
@click.option("--port", type=int, default=None, help="Listen port (default: 3000).")
@click.option("--path", "webhook_path", type=str, default=None, help="Webhook path (default: /).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, webhook_path: str | None) -> None:
    """Run the webhook receiver in the foreground."""
    from mergebot.daemon import serve as _serve

    try:
        settings = apply_overrides(_load(ctx), host=host, port=port, webhook_path=webhook_path)
    except ConfigError as e:
        raise click.ClickException(str(e))
    click.echo(f"Listening on {settings.host}:{settings.port}{settings.webhook_path}")
    _serve(settings)


@main.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the resolved settings with the token masked."""
    settings = _load(ctx)
    click.echo(yaml.dump(settings.masked(), default_flow_style=False, sort_keys=False), nl=False)


if __name__ == "__main__":
    main()
