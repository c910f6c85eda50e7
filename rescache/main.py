"""Main entry point for the rescache application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the ResourceCacheService.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urljoin, urlsplit

import typer
from typing_extensions import Annotated

# --- Setup Logging Early ---
# Use basic config until setup_logging is called with the configured settings
logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# --- Domain Layer ---
from rescache.domain.exceptions import ResourceCacheError
from rescache.domain.interfaces.user_interface import UserInterface
from rescache.domain.models.common import partition_name_for
from rescache.domain.models.resource import ResourceRequest

# --- Core Layer ---
from rescache.core.services.fallback_resolver import FallbackResolver
from rescache.core.services.lifecycle_manager import LifecycleManager
from rescache.core.services.policy_router import PolicyRouter, default_page_rule, default_rules
from rescache.core.services.resource_service import ResourceCacheService

# --- Infrastructure Layer ---
# Config
from rescache.infrastructure.config.settings import (
    get_cache_dir,
    get_config,
    get_ephemeral_settings,
    get_freshness_window,
    get_max_retries,
    get_network_timeout,
    get_origin,
    get_page_root_resource,
    get_partition_version,
    get_placeholder_resource,
    get_precache_urls,
    get_retry_backoff,
    load_configuration,
    set_config,
)
# UI
from rescache.infrastructure.cli.display import ConsoleDisplay
# Cache
from rescache.infrastructure.cache.ephemeral_cache import EphemeralValueCache
from rescache.infrastructure.cache.partition_store import DiskPartitionStore
# Network
from rescache.infrastructure.network.http_transport import HttpTransport
# Resilience
from rescache.infrastructure.resilience.retrying_transport import RetryingTransport
# Monitoring
from rescache.infrastructure.monitoring.logger_setup import setup_logging

# --- Dependency Injection Container (Manual) ---

_dependencies: Optional[Dict[str, Any]] = None


def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    load_configuration()
    setup_logging(
        log_level=get_config('logging.level', 'INFO'),
        log_format=get_config('logging.format'),
        log_file=get_config('logging.file'),
        max_bytes=int(get_config('logging.file_max_bytes')),
        backup_count=int(get_config('logging.backup_count')),
        library_level=get_config('logging.library_level'),
    )
    logger.info("Initializing application dependencies...")
    dependencies: Dict[str, Any] = {}

    # 1. Infrastructure adapters
    dependencies['ui'] = ConsoleDisplay()
    dependencies['store'] = DiskPartitionStore(get_cache_dir())
    dependencies['value_cache'] = EphemeralValueCache(**get_ephemeral_settings())

    origin = get_origin()
    initial_backoff, backoff_factor = get_retry_backoff()
    dependencies['transport'] = RetryingTransport(
        HttpTransport(base_url=origin, timeout=get_network_timeout() or 10.0),
        max_retries=get_max_retries(),
        initial_backoff_s=initial_backoff,
        backoff_factor=backoff_factor,
        timeout_s=get_network_timeout(),
    )

    # 2. Policy
    dependencies['router'] = PolicyRouter(
        rules=default_rules(
            image_freshness=get_freshness_window('images'),
            api_freshness=get_freshness_window('api'),
            static_freshness=get_freshness_window('static'),
            image_placeholder=get_placeholder_resource(),
        ),
        default_rule=default_page_rule(
            page_freshness=get_freshness_window('pages'),
            page_root=get_page_root_resource(),
        ),
    )

    # 3. Core services
    dependencies['lifecycle'] = LifecycleManager(
        dependencies['store'],
        purposes=dependencies['router'].partition_purposes,
        transport=dependencies['transport'],
        origin=origin,
        precache_urls=get_precache_urls(),
    )
    dependencies['service'] = ResourceCacheService(
        store=dependencies['store'],
        transport=dependencies['transport'],
        value_cache=dependencies['value_cache'],
        router=dependencies['router'],
        lifecycle=dependencies['lifecycle'],
        fallback=FallbackResolver(dependencies['store']),
        events=dependencies['lifecycle'].events,
        version=get_partition_version(),
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


def get_dependencies() -> Dict[str, Any]:
    """Returns the wired-up dependencies, creating them on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def close_dependencies() -> None:
    """Releases open partition handles and forgets the current wiring."""
    global _dependencies
    if _dependencies is not None:
        _dependencies['store'].close()
        _dependencies = None


# --- Typer App Definition ---
app = typer.Typer(
    name="rescache",
    help="rescache: tiered resource cache with versioned partitions and offline fallbacks.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_with_service(command: Callable[[ResourceCacheService, UserInterface], Awaitable[int]]) -> None:
    """Runs an async command against the service, then shuts everything down.

    The command returns the process exit code.
    """
    deps = get_dependencies()
    service: ResourceCacheService = deps['service']
    ui: UserInterface = deps['ui']

    async def _run() -> int:
        try:
            return await command(service, ui)
        finally:
            await service.stop()

    try:
        exit_code = asyncio.run(_run())
    except ResourceCacheError as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        ui.display_error(str(e))
        exit_code = 1
    finally:
        close_dependencies()
    if exit_code:
        raise typer.Exit(code=exit_code)


def resolve_url(url: str) -> str:
    """Resolves origin-relative paths against the configured origin."""
    if urlsplit(url).scheme:
        return url
    return urljoin(f"{get_origin()}/", url)


def configured_partition_names(router: PolicyRouter) -> List[str]:
    version = get_partition_version()
    return [partition_name_for(purpose, version) for purpose in router.partition_purposes]


# --- CLI Commands ---

@app.command()
def fetch(
    url: Annotated[str, typer.Argument(help="Absolute URL or path relative to the configured origin.")],
    method: Annotated[str, typer.Option("--method", "-X", help="Request method.")] = "GET",
    accept: Annotated[Optional[str], typer.Option("--accept", "-a", help="Accept header (e.g. 'image/webp').")] = None,
    preview: Annotated[int, typer.Option("--preview", help="Payload characters to preview (0 to hide).")] = 400,
):
    """Serve one request through the cache and show how it was answered."""
    headers = {"accept": accept} if accept else {}
    request = ResourceRequest(url=resolve_url(url), method=method.upper(), headers=headers)

    async def _fetch(service: ResourceCacheService, ui: UserInterface) -> int:
        result = await service.respond(request)
        ui.display_result(result, preview_chars=preview)
        return 0 if result.ok else 1

    run_with_service(_fetch)


@app.command()
def activate(
    version: Annotated[Optional[int], typer.Option("--version", "-V", help="Partition version to activate.")] = None,
):
    """Create (and precache) a partition version, then delete every other version."""
    target = version if version is not None else get_partition_version()

    async def _activate(service: ResourceCacheService, ui: UserInterface) -> int:
        report = await service.lifecycle.activate(target)
        ui.display_info(
            f"Activated version {report.version}: {', '.join(report.partitions)}\n"
            f"Deleted: {', '.join(report.deleted) or 'none'}\n"
            f"Precached: {report.precached} (failed: {report.precache_failures})"
        )
        if report.precache_failures:
            ui.display_warning(f"{report.precache_failures} precache fetches failed; the origin may be offline.")
        ui.display_partitions(service.lifecycle.partitions(), service.lifecycle.active_names())
        return 0

    run_with_service(_activate)


@app.command()
def partitions():
    """List partitions, marking the ones belonging to the configured version."""
    deps = get_dependencies()
    try:
        deps['ui'].display_partitions(
            deps['store'].list_partitions(), configured_partition_names(deps['router'])
        )
    finally:
        close_dependencies()


@app.command(name="clear-cache")
def clear_cache_command():
    """Delete every partition."""
    deps = get_dependencies()
    try:
        removed = deps['store'].clear()
        deps['ui'].display_info(f"Removed {removed} partitions.")
    finally:
        close_dependencies()


@app.command()
def stats():
    """Show partitions with their record counts."""
    deps = get_dependencies()
    store = deps['store']
    try:
        known = store.list_partitions()
        deps['ui'].display_partitions(known, configured_partition_names(deps['router']))
        counts: Dict[str, Any] = {}
        for partition in known:
            if not store.is_registered(partition.name):
                # Orphan directory; opening it would register it
                counts[partition.name] = None
                continue
            handle = store.open(partition.name, partition.version)
            counts[partition.name] = store.record_count(handle)
        deps['ui'].display_stats({
            "configured_version": get_partition_version(),
            "records": counts,
        })
    finally:
        close_dependencies()


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Tiered resource cache CLI."""
    if verbose:
        set_config('logging.level', 'DEBUG')


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
