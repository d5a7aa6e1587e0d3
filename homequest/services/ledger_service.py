"""Account ledger service.

This module owns every balance mutation of a user's allowance account:
- Deposits (task rewards, refunds, parent top-ups)
- Spending, falling back to credit when the balance is short
- Star rewards
- Daily compound interest
- Credit limit adjustments

Each balance-affecting operation appends exactly one ``Transaction`` row
holding the post-mutation balance. Account writes are version checked, so
two concurrent mutations of the same account cannot both succeed.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from homequest.models import db, Account, Transaction, User
from homequest.services.errors import (
    ConflictError, InsufficientFundsError, InvalidInputError, NotFoundError
)
from homequest.utils.timezone import days_between, resolve_now, to_naive_utc

logger = logging.getLogger(__name__)


class LedgerService:
    """Service for account balances and the transaction log."""

    @staticmethod
    def get_account(user_id: int) -> Account:
        """Get a user's account, creating it with default terms on first use."""
        account = Account.query.filter_by(user_id=user_id).first()
        if account:
            return account

        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError(f'User {user_id} not found')

        account = Account(
            user_id=user_id,
            credit_score=current_app.config.get('DEFAULT_CREDIT_SCORE', 80),
            credit_limit=current_app.config.get('DEFAULT_CREDIT_LIMIT', 100),
            interest_rate=current_app.config.get('DEFAULT_INTEREST_RATE', 0.001)
        )
        db.session.add(account)
        db.session.flush()
        logger.info(f"Created account for user {user_id}")
        return account

    @staticmethod
    def _record(account: Account, txn_type: str, amount: int, description: str,
                currency: str = 'coins', related_task_id: Optional[int] = None,
                related_order_id: Optional[int] = None) -> Transaction:
        """Append the ledger row for a mutation already applied to ``account``."""
        if currency == 'coins':
            user = db.session.get(User, account.user_id)
            user.available_points = account.coins

        txn = Transaction(
            user_id=account.user_id,
            type=txn_type,
            currency=currency,
            amount=amount,
            balance=account.balance_of(currency),
            description=description,
            related_task_id=related_task_id,
            related_order_id=related_order_id
        )
        db.session.add(txn)
        return txn

    @staticmethod
    def _persist(commit: bool) -> None:
        try:
            if commit:
                db.session.commit()
            else:
                db.session.flush()
        except StaleDataError:
            db.session.rollback()
            raise ConflictError('Account was modified concurrently, please retry')

    @staticmethod
    def deposit(user_id: int, amount: int, description: str, currency: str = 'coins',
                related_task_id: Optional[int] = None, related_order_id: Optional[int] = None,
                commit: bool = True) -> Transaction:
        """
        Credit a positive amount to a balance.

        Args:
            user_id: Account owner
            amount: Amount to add (must be positive)
            description: Ledger description
            currency: 'coins' or 'stars'
            commit: Commit the session (False when part of a larger unit of work)
        """
        if amount <= 0:
            raise InvalidInputError('Deposit amount must be positive')

        account = LedgerService.get_account(user_id)
        if currency == 'stars':
            account.stars += amount
        else:
            account.coins += amount

        txn = LedgerService._record(account, 'income', amount, description, currency,
                                    related_task_id=related_task_id,
                                    related_order_id=related_order_id)
        LedgerService._persist(commit)
        logger.info(f"Deposited {amount} {currency} to user {user_id}: {description}")
        return txn

    @staticmethod
    def spend(user_id: int, amount: int, description: str,
              related_order_id: Optional[int] = None, commit: bool = True) -> Transaction:
        """
        Debit coins, drawing on credit for any shortfall.

        Raises:
            InsufficientFundsError: balance plus remaining credit is below ``amount``
        """
        if amount <= 0:
            raise InvalidInputError('Spend amount must be positive')

        account = LedgerService.get_account(user_id)

        if account.coins >= amount:
            account.coins -= amount
            txn = LedgerService._record(account, 'expense', -amount, description,
                                        related_order_id=related_order_id)
        else:
            shortfall = amount - account.coins
            if account.credit_available < shortfall:
                raise InsufficientFundsError(
                    f'Insufficient funds: balance {account.coins}, '
                    f'available credit {account.credit_available}, needed {amount}'
                )
            account.coins = 0
            account.credit_used += shortfall
            txn = LedgerService._record(account, 'credit', -shortfall, f'{description} (on credit)',
                                        related_order_id=related_order_id)
            logger.info(f"User {user_id} used {shortfall} credit (now {account.credit_used}/{account.credit_limit})")

        LedgerService._persist(commit)
        logger.info(f"User {user_id} spent {amount} coins: {description}")
        return txn

    @staticmethod
    def reward_stars(user_id: int, amount: int, description: Optional[str] = None,
                     commit: bool = True) -> Transaction:
        """Award stars to a user."""
        if amount <= 0:
            raise InvalidInputError('Star reward must be positive')

        account = LedgerService.get_account(user_id)
        account.stars += amount
        txn = LedgerService._record(account, 'reward', amount, description or f'Awarded {amount} stars',
                                    currency='stars')
        LedgerService._persist(commit)
        return txn

    @staticmethod
    def calculate_interest(user_id: int, now: Optional[datetime] = None, commit: bool = True) -> int:
        """
        Compound daily interest on the coin balance.

        Only whole elapsed days count. When no full day has passed, the
        balance is empty, or the interest rounds down to zero, nothing
        changes and the calculation clock is not advanced.

        Returns:
            int: Interest credited (0 when nothing happened)
        """
        account = LedgerService.get_account(user_id)
        now_utc = to_naive_utc(resolve_now(now))

        days = days_between(account.last_interest_calc_at, now_utc)
        if days <= 0 or account.coins <= 0:
            return 0

        principal = account.coins
        interest = math.floor(principal * (1 + account.interest_rate) ** days - principal)
        if interest <= 0:
            return 0

        account.coins += interest
        account.total_interest_earned += interest
        account.last_interest_calc_at = now_utc
        LedgerService._record(account, 'interest', interest, f'Interest earned ({days} days)')
        LedgerService._persist(commit)

        logger.info(f"Credited {interest} interest to user {user_id} for {days} days")
        return interest

    @staticmethod
    def adjust_credit(child_id: int, credit_limit: int, commit: bool = True) -> Account:
        """Set a child's credit limit. Does not touch balances, so nothing is logged."""
        if credit_limit < 0:
            raise InvalidInputError('Credit limit cannot be negative')

        account = LedgerService.get_account(child_id)
        old_limit = account.credit_limit
        account.credit_limit = credit_limit
        LedgerService._persist(commit)

        logger.info(f"Credit limit for user {child_id} changed from {old_limit} to {credit_limit}")
        return account

    @staticmethod
    def list_transactions(user_id: int, limit: int = 20, offset: int = 0,
                          txn_type: Optional[str] = None,
                          currency: Optional[str] = None) -> tuple[List[Transaction], int]:
        """Newest-first page of a user's ledger and the total row count."""
        query = Transaction.query.filter_by(user_id=user_id)
        if txn_type:
            query = query.filter_by(type=txn_type)
        if currency:
            query = query.filter_by(currency=currency)

        total = query.count()
        rows = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()) \
            .limit(limit).offset(offset).all()
        return rows, total
