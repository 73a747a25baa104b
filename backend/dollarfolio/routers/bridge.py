"""Broker bridge API router.

Hana Securities is reached through the PC bridge running on the user's
machine; KIS through its cloud OpenAPI. Both sync through BrokerSyncService.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from dollarfolio.constants import BrokerType, TransactionType
from dollarfolio.database import get_db
from dollarfolio.dependencies.auth import get_current_user
from dollarfolio.dependencies.services import get_hana_client, get_kis_token_cache
from dollarfolio.models import BrokerAccount, User
from dollarfolio.rate_limiter import limiter
from dollarfolio.schemas.broker import (
    BalanceResponse,
    BridgeStatus,
    BrokerAccountRequest,
    BrokerBalance,
    ConnectResponse,
    HanaConnectRequest,
    HanaOrderRequest,
    KISConnectRequest,
    OperationResponse,
    OrderResponse,
    SyncRequest,
    SyncResponse,
)
from dollarfolio.services.brokers import BrokerAPIError
from dollarfolio.services.brokers.account_service import BrokerAccountService
from dollarfolio.services.brokers.hana import HanaBridgeClient
from dollarfolio.services.brokers.kis import KISClient, KISCredentials, TokenCache
from dollarfolio.services.brokers.sync_service import BrokerSyncService, SyncResult
from dollarfolio.services.repositories import (
    BrokerAccountRepository,
    DuplicateError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bridge", tags=["bridge"])


def _get_account(db: Session, account_id: str, user_id: str, broker: str) -> BrokerAccount:
    try:
        return BrokerAccountRepository(db).get_for_user(account_id, user_id, broker=broker)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Broker account not found",
        )


def _require_hana_session(client: HanaBridgeClient) -> None:
    bridge_status = client.get_status()
    if not bridge_status.connected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PC bridge is not running",
        )
    if not bridge_status.hana_connected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Not connected to Hana Securities",
        )


def _kis_client(account: BrokerAccount, token_cache: TokenCache) -> KISClient:
    if not account.app_key or not account.app_secret:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Credentials missing, please link the account again",
        )
    return KISClient(
        KISCredentials(
            app_key=account.app_key,
            app_secret=account.app_secret,
            account_no=account.account_no,
        ),
        token_cache=token_cache,
    )


def _sync_response(result: SyncResult) -> SyncResponse:
    if not result.balance_synced and result.total_orders == 0 and result.errors:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Broker did not respond, nothing was synced",
        )
    return SyncResponse(
        success=not result.errors,
        synced_count=result.synced_count,
        skipped_count=result.skipped_count,
        total_orders=result.total_orders,
        balance_synced=result.balance_synced,
        balances=[BrokerBalance.model_validate(b) for b in result.balances],
        errors=result.errors,
        message=result.message,
    )


@router.get("/status", response_model=BridgeStatus)
def get_bridge_status(client: HanaBridgeClient = Depends(get_hana_client)):
    """Report whether the PC bridge is running and logged in to Hana."""
    return BridgeStatus.model_validate(client.get_status())


# --- Hana Securities (PC bridge) ---


@router.post("/hana/connect", response_model=ConnectResponse)
@limiter.limit("10/minute")
def hana_connect(
    request: Request,
    data: HanaConnectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: HanaBridgeClient = Depends(get_hana_client),
):
    """Open the Hana session on the bridge and link the account."""
    if not client.get_status().connected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PC bridge is not running",
        )

    client.account_no = data.account_no
    result = client.open_session()
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)

    account = BrokerAccountService.link_hana_account(
        db, current_user.id, data.account_no, data.account_alias
    )
    return ConnectResponse(broker_account_id=account.id, message="Hana Securities connected")


@router.post("/hana/login", response_model=OperationResponse)
def hana_login(
    current_user: User = Depends(get_current_user),
    client: HanaBridgeClient = Depends(get_hana_client),
):
    """Start certificate login on the bridge (waits up to 60 seconds)."""
    return OperationResponse.model_validate(client.login())


@router.post("/hana/logout", response_model=OperationResponse)
def hana_logout(
    current_user: User = Depends(get_current_user),
    client: HanaBridgeClient = Depends(get_hana_client),
):
    return OperationResponse.model_validate(client.logout())


@router.get("/hana/balance", response_model=BalanceResponse)
def hana_balance(
    broker_account_id: str | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: HanaBridgeClient = Depends(get_hana_client),
):
    """Get foreign currency balances from Hana."""
    if broker_account_id:
        client.account_no = _get_account(
            db, broker_account_id, current_user.id, BrokerType.HANA
        ).account_no

    _require_hana_session(client)
    try:
        balances = client.get_balance()
    except BrokerAPIError as e:
        logger.warning(f"Hana balance inquiry failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return BalanceResponse(balances=[BrokerBalance.model_validate(b) for b in balances])


@router.post("/hana/order", response_model=OrderResponse)
@limiter.limit("10/minute")
def hana_order(
    request: Request,
    data: HanaOrderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: HanaBridgeClient = Depends(get_hana_client),
):
    """Place a buy or sell order. It is recorded locally on the next sync."""
    account = _get_account(db, data.broker_account_id, current_user.id, BrokerType.HANA)
    client.account_no = account.account_no
    _require_hana_session(client)

    if data.type == TransactionType.BUY:
        result = client.place_buy_order(data.amount, data.rate, data.password)
    else:
        result = client.place_sell_order(data.amount, data.rate, data.password)

    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)

    logger.info(f"Placed Hana {data.type} order {result.order_id} for account {account.id}")
    return OrderResponse.model_validate(result)


@router.post("/hana/sync", response_model=SyncResponse)
@limiter.limit("10/minute")
def hana_sync(
    request: Request,
    data: SyncRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: HanaBridgeClient = Depends(get_hana_client),
):
    """Import filled Hana orders as transactions."""
    account = _get_account(db, data.broker_account_id, current_user.id, BrokerType.HANA)
    client.account_no = account.account_no
    _require_hana_session(client)

    result = BrokerSyncService(db).sync(account, client, data.start_date, data.end_date)
    return _sync_response(result)


# --- Korea Investment & Securities (OpenAPI) ---


@router.post("/kis/connect", response_model=ConnectResponse)
@limiter.limit("10/minute")
def kis_connect(
    request: Request,
    data: KISConnectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    token_cache: TokenCache = Depends(get_kis_token_cache),
):
    """Verify KIS credentials and link the account."""
    existing = BrokerAccountRepository(db).find_by_account_no(
        current_user.id, BrokerType.KIS, data.account_no
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This account is already linked",
        )

    credentials = KISCredentials(
        app_key=data.app_key, app_secret=data.app_secret, account_no=data.account_no
    )
    with KISClient(credentials, token_cache=token_cache) as client:
        if not client.verify_credentials():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="KIS authentication failed, check the app key and secret",
            )

    try:
        account = BrokerAccountService.link_kis_account(
            db,
            current_user.id,
            data.account_no,
            data.app_key,
            data.app_secret,
            data.account_alias,
        )
    except DuplicateError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This account is already linked",
        )

    return ConnectResponse(broker_account_id=account.id, message="KIS account connected")


@router.post("/kis/balance", response_model=BalanceResponse)
def kis_balance(
    data: BrokerAccountRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    token_cache: TokenCache = Depends(get_kis_token_cache),
):
    """Get the USD balance from KIS."""
    account = _get_account(db, data.broker_account_id, current_user.id, BrokerType.KIS)
    with _kis_client(account, token_cache) as client:
        try:
            balances = client.get_balance()
        except BrokerAPIError as e:
            logger.warning(f"KIS balance inquiry failed for account {account.id}: {e}")
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return BalanceResponse(balances=[BrokerBalance.model_validate(b) for b in balances])


@router.post("/kis/sync", response_model=SyncResponse)
@limiter.limit("10/minute")
def kis_sync(
    request: Request,
    data: SyncRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    token_cache: TokenCache = Depends(get_kis_token_cache),
):
    """Import filled KIS orders as transactions."""
    account = _get_account(db, data.broker_account_id, current_user.id, BrokerType.KIS)
    with _kis_client(account, token_cache) as client:
        result = BrokerSyncService(db).sync(account, client, data.start_date, data.end_date)

    return _sync_response(result)
