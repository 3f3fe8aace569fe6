"""
OpenTelemetry setup.

Cache, invalidation, rate limiting and search calls open spans through
get_tracer(). A tracer provider is installed once per process; spans are
printed only when ``tracing.console_export`` is on.
"""
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from loguru import logger

from movie_api.core.constants import APP_NAME, APP_VERSION


def setup_tracing(config_obj=None) -> bool:
    """
    Install the SDK tracer provider.

    Returns:
        True if a provider was installed by this call
    """
    enabled = True
    console_export = False
    environment = "development"
    if config_obj is not None:
        enabled = config_obj.get("tracing.enabled", default=True, expected_type=bool)
        console_export = config_obj.get("tracing.console_export", default=False, expected_type=bool)
        environment = config_obj.env

    if not enabled:
        logger.info("Tracing disabled by configuration")
        return False

    if isinstance(trace.get_tracer_provider(), TracerProvider):
        # set_tracer_provider only takes effect once per process
        return False

    provider = TracerProvider(resource=Resource.create({
        "service.name": APP_NAME,
        "service.version": APP_VERSION,
        "deployment.environment": environment,
    }))
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)

    logger.info(f"Tracing enabled for {environment} (console export: {console_export})")
    return True


def get_tracer(name: str):
    return trace.get_tracer(name)
