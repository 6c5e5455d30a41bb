from dependency_injector import containers, providers

from tokenhub.config import Settings
from tokenhub.core.token_strings import TokenStringFactory
from tokenhub.providers.hub.client import HubMirrorClient
from tokenhub.providers.payments.nowpayments import NowPaymentsClient


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class ClientModule(containers.DeclarativeContainer):
    """External collaborators shared across requests."""

    config = providers.DependenciesContainer()

    hub_client = providers.Singleton(HubMirrorClient.from_settings, settings=config.config)
    payment_gateway = providers.Singleton(
        NowPaymentsClient.from_settings, settings=config.config
    )
    token_factory = providers.Singleton(TokenStringFactory)


class Container(containers.DeclarativeContainer):
    """Application container.

    Services take a per-request DB session, so they are assembled in
    ``tokenhub.deps`` from these singletons plus ``get_db``.
    """

    wiring_config = containers.WiringConfiguration(
        modules=["tokenhub.deps"],
    )

    config = providers.Container(ConfigModule)
    clients = providers.Container(ClientModule, config=config)
