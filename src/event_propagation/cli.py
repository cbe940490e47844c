"""CLI entry point for event propagation."""

from __future__ import annotations

import click

from .core.config import load_settings


@click.group()
def main() -> None:
    """Domain event propagation over Azure Event Grid."""


@main.command()
@click.argument("module")
def handlers(module: str) -> None:
    """List the domain events and handlers found in MODULE."""
    from .subscription.builder import EventPropagationSubscriberBuilder

    builder = (
        EventPropagationSubscriberBuilder()
        .add_domain_event_handlers_from_module(module)
        .add_domain_events_from_module(module)
    )
    registry = builder.registry
    handled = set(registry.handled_names())

    if not len(registry):
        click.echo(f"No domain events found in {module}")
        return

    for descriptor in sorted(registry, key=lambda d: d.name):
        marker = "handler" if descriptor.name in handled else "no handler"
        click.echo(
            f"{descriptor.name}  {descriptor.schema.value}  "
            f"{descriptor.event_type.__qualname__}  ({marker})"
        )


@main.command()
@click.argument("module")
@click.option("--config", default=None, help="Config file path")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
def serve(module: str, config: str | None, host: str, port: int) -> None:
    """Serve the Event Grid webhook for the handlers in MODULE."""
    import uvicorn

    from .observability.logger import setup_logging
    from .subscription.api import create_webhook_app
    from .subscription.builder import EventPropagationSubscriberBuilder

    settings = load_settings(config_path=config)
    setup_logging(settings.observability.log_level, settings.observability.log_format)
    if settings.observability.metrics_port:
        from .observability.metrics import start_metrics_server

        start_metrics_server(settings.observability.metrics_port, service=module)

    request_handler = (
        EventPropagationSubscriberBuilder(settings)
        .add_domain_event_handlers_from_module(module)
        .add_domain_events_from_module(module)
        .build_request_handler()
    )
    app = create_webhook_app(request_handler)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
