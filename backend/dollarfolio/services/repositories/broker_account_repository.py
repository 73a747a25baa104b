"""Broker account data access layer."""

from typing import TYPE_CHECKING

from sqlalchemy import desc
from sqlalchemy.orm import Session

from dollarfolio.models import BrokerAccount

from .exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence


class BrokerAccountRepository:
    """Broker account queries, scoped to an owning user."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_for_user(
        self, account_id: str, user_id: str, broker: str | None = None
    ) -> BrokerAccount:
        """Get a broker account owned by the user or raise NotFoundError."""
        query = self._db.query(BrokerAccount).filter(
            BrokerAccount.id == account_id, BrokerAccount.user_id == user_id
        )
        if broker:
            query = query.filter(BrokerAccount.broker == broker)

        account = query.first()
        if account is None:
            raise NotFoundError("BrokerAccount", account_id)
        return account

    def find_by_account_no(self, user_id: str, broker: str, account_no: str) -> BrokerAccount | None:
        return (
            self._db.query(BrokerAccount)
            .filter(
                BrokerAccount.user_id == user_id,
                BrokerAccount.broker == broker,
                BrokerAccount.account_no == account_no,
            )
            .first()
        )

    def list_active_for_user(self, user_id: str) -> "Sequence[BrokerAccount]":
        return (
            self._db.query(BrokerAccount)
            .filter(BrokerAccount.user_id == user_id, BrokerAccount.is_active.is_(True))
            .order_by(desc(BrokerAccount.created_at))
            .all()
        )
