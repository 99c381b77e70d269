"""
Dependency Injection Container

Central container for dependency injection using dependency-injector library.
Wires the catalog, repository and services together following DIP.
"""

from dependency_injector import containers, providers

from prompt_registry.adapters.dynamodb import DynamoDBClient
from prompt_registry.config import Settings, settings
from prompt_registry.core.exceptions import ConfigurationError
from prompt_registry.prompts.catalog import PromptCatalog
from prompt_registry.repositories import DynamoDBPromptRepository, InMemoryPromptRepository
from prompt_registry.services import (
    AuditLog,
    BlockStore,
    CompositionResolver,
    PromptService,
)

STORAGE_BACKENDS = ("memory", "dynamodb")


class Container(containers.DeclarativeContainer):
    """
    Application dependency injection container.

    Usage:
        container = init_container()
        store = container.block_store()

        # Override for testing
        container.prompt_repository.override(InMemoryPromptRepository())
    """

    # Configuration
    config = providers.Configuration()

    # ========== Catalog ==========

    prompt_catalog = providers.Singleton(
        PromptCatalog,
        prompts_dir=config.prompts_dir,
    )

    # ========== Clients ==========

    dynamodb_client = providers.Singleton(
        DynamoDBClient,
        endpoint_url=config.dynamodb.endpoint,
        region_name=config.dynamodb.region,
        access_key=config.dynamodb.access_key,
        secret_key=config.dynamodb.secret_key,
    )

    # ========== Repositories ==========

    prompt_repository = providers.Selector(
        config.storage_backend,
        memory=providers.Singleton(InMemoryPromptRepository),
        dynamodb=providers.Singleton(
            DynamoDBPromptRepository,
            client=dynamodb_client,
            table_name=config.dynamodb.table_name,
            namespace=config.namespace,
        ),
    )

    # ========== Services ==========

    audit_log = providers.Singleton(
        AuditLog,
        repository=prompt_repository,
    )

    block_store = providers.Singleton(
        BlockStore,
        repository=prompt_repository,
        builtins=prompt_catalog.provided.builtins,
        variant_contexts=prompt_catalog.provided.variant_contexts,
        audit_log=audit_log,
        namespace=config.namespace,
    )

    composition_resolver = providers.Singleton(
        CompositionResolver,
        block_store=block_store,
        catalog=prompt_catalog.provided.compositions,
        default_timeout=config.resolve_timeout_seconds,
    )

    prompt_service = providers.Singleton(
        PromptService,
        resolver=composition_resolver,
        block_store=block_store,
        libraries=prompt_catalog.provided.libraries,
    )


# Global container instance
container = Container()


def get_container() -> Container:
    """
    Get the global container instance.

    Returns:
        Container: Global DI container
    """
    return container


def init_container(app_settings: Settings = settings) -> Container:
    """
    Load settings into the container.

    Raises:
        ConfigurationError: If STORAGE_BACKEND is not supported.
    """
    if app_settings.STORAGE_BACKEND not in STORAGE_BACKENDS:
        raise ConfigurationError(
            f"Unknown STORAGE_BACKEND '{app_settings.STORAGE_BACKEND}'. "
            f"Use one of: {', '.join(STORAGE_BACKENDS)}"
        )

    container.config.from_dict({
        "storage_backend": app_settings.STORAGE_BACKEND,
        "namespace": app_settings.PROMPT_NAMESPACE,
        "prompts_dir": app_settings.PROMPTS_DIR,
        "resolve_timeout_seconds": app_settings.RESOLVE_TIMEOUT_SECONDS,
        "dynamodb": {
            "endpoint": app_settings.DYNAMODB_ENDPOINT,
            "region": app_settings.DYNAMODB_REGION,
            "access_key": app_settings.DYNAMODB_ACCESS_KEY,
            "secret_key": app_settings.DYNAMODB_SECRET_KEY,
            "table_name": app_settings.PROMPTS_TABLE_NAME,
        },
    })
    return container
