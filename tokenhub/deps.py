from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.orm import Session

from tokenhub.config import Settings
from tokenhub.containers import Container
from tokenhub.core.token_strings import TokenStringFactory
from tokenhub.database.session import get_db
from tokenhub.providers.hub.client import HubMirrorClient
from tokenhub.providers.payments.nowpayments import NowPaymentsClient

# Services
from tokenhub.services.admin_service import AdminService
from tokenhub.services.balance_service import BalanceService
from tokenhub.services.payment_service import PaymentService
from tokenhub.services.product_service import ProductService
from tokenhub.services.token_service import TokenService


def get_balance_service(db: Session = Depends(get_db)) -> BalanceService:
    return BalanceService(db=db)


@inject
def get_token_service(
    db: Session = Depends(get_db),
    hub_client: HubMirrorClient = Depends(Provide[Container.clients.hub_client]),
    token_factory: TokenStringFactory = Depends(
        Provide[Container.clients.token_factory]
    ),
    settings: Settings = Depends(Provide[Container.config.config]),
) -> TokenService:
    return TokenService(
        db=db, hub_client=hub_client, token_factory=token_factory, settings=settings
    )


@inject
def get_payment_service(
    db: Session = Depends(get_db),
    gateway: NowPaymentsClient = Depends(Provide[Container.clients.payment_gateway]),
    token_factory: TokenStringFactory = Depends(
        Provide[Container.clients.token_factory]
    ),
    settings: Settings = Depends(Provide[Container.config.config]),
) -> PaymentService:
    return PaymentService(
        db=db, gateway=gateway, token_factory=token_factory, settings=settings
    )


@inject
def get_product_service(
    db: Session = Depends(get_db),
    hub_client: HubMirrorClient = Depends(Provide[Container.clients.hub_client]),
) -> ProductService:
    return ProductService(db=db, hub_client=hub_client)


@inject
def get_admin_service(
    db: Session = Depends(get_db),
    token_factory: TokenStringFactory = Depends(
        Provide[Container.clients.token_factory]
    ),
) -> AdminService:
    return AdminService(db=db, token_factory=token_factory)
