"""Linking and unlinking broker accounts."""

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from dollarfolio.constants import BrokerType, Currency
from dollarfolio.models import BrokerAccount, Portfolio
from dollarfolio.services.repositories import (
    BrokerAccountRepository,
    DuplicateError,
    PortfolioRepository,
)

logger = logging.getLogger(__name__)


class BrokerAccountService:
    """Service for creating and deactivating broker accounts."""

    @staticmethod
    def link_hana_account(
        db: Session, user_id: str, account_no: str, account_alias: str | None = None
    ) -> BrokerAccount:
        """Create or reactivate a Hana account after the bridge connected.

        A new account gets a USD portfolio so synced orders have somewhere to land.
        """
        repo = BrokerAccountRepository(db)
        account = repo.find_by_account_no(user_id, BrokerType.HANA, account_no)
        now = datetime.now(UTC)

        if account is not None:
            account.is_active = True
            account.account_alias = account_alias or account.account_alias
            account.last_sync_at = now
            db.commit()
            db.refresh(account)
            logger.info(f"Reactivated Hana account {account.id}")
            return account

        account = BrokerAccount(
            user_id=user_id,
            broker=BrokerType.HANA,
            account_no=account_no,
            account_alias=account_alias or f"Hana {account_no[-4:]}",
            is_active=True,
            last_sync_at=now,
        )
        db.add(account)
        db.flush()

        db.add(
            Portfolio(
                user_id=user_id,
                broker_account_id=account.id,
                name="Hana USD",
                currency=Currency.USD,
                description="Linked Hana Securities portfolio",
                is_default=PortfolioRepository(db).count_for_user(user_id) == 0,
            )
        )
        db.commit()
        db.refresh(account)
        logger.info(f"Linked Hana account {account.id}")
        return account

    @staticmethod
    def link_kis_account(
        db: Session,
        user_id: str,
        account_no: str,
        app_key: str,
        app_secret: str,
        account_alias: str | None = None,
    ) -> BrokerAccount:
        """Store verified KIS credentials.

        Raises:
            DuplicateError: If the account number is already linked for this user
        """
        repo = BrokerAccountRepository(db)
        if repo.find_by_account_no(user_id, BrokerType.KIS, account_no) is not None:
            raise DuplicateError("BrokerAccount", "account_no", account_no)

        account = BrokerAccount(
            user_id=user_id,
            broker=BrokerType.KIS,
            account_no=account_no,
            app_key=app_key,
            app_secret=app_secret,
            account_alias=account_alias or f"KIS-{account_no[-4:]}",
            is_active=True,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        logger.info(f"Linked KIS account {account.id}")
        return account

    @staticmethod
    def deactivate(db: Session, account: BrokerAccount) -> None:
        """Unlink an account. Its portfolios and synced transactions are kept."""
        account.is_active = False
        db.commit()
        logger.info(f"Deactivated broker account {account.id}")
