"""
Ledger balance audit job.
"""

import logging

logger = logging.getLogger(__name__)


def audit_account_balances() -> list:
    """
    Audit every child's live balances against the transaction log.

    Runs nightly at 02:00. For each currency the newest transaction's
    balance snapshot must equal the live balance, and the user's
    ``available_points`` must mirror the coin balance.

    Returns:
        list: Discrepancy records (empty when everything matches)
    """
    logger.info("Starting account balance audit")

    # Import inside function to avoid circular imports and to get app context
    from homequest.models import Account, User, latest_balance_snapshot

    try:
        discrepancies = []
        accounts = Account.query.join(User, Account.user_id == User.id).filter(User.role == 'child').all()

        for account in accounts:
            for currency in ('coins', 'stars'):
                live = account.balance_of(currency)
                snapshot = latest_balance_snapshot(account.user_id, currency)
                if (snapshot if snapshot is not None else 0) != live:
                    discrepancies.append({
                        'user_id': account.user_id,
                        'currency': currency,
                        'stored': live,
                        'ledger': snapshot,
                    })

            if account.user.available_points != account.coins:
                discrepancies.append({
                    'user_id': account.user_id,
                    'currency': 'available_points',
                    'stored': account.user.available_points,
                    'ledger': account.coins,
                })

        if discrepancies:
            logger.error(f"Balance discrepancies found: {discrepancies}")
        else:
            logger.info(f"Balance audit complete: all {len(accounts)} accounts verified")

        return discrepancies

    except Exception as e:
        logger.error(f"Error in account balance audit: {e}")
        raise
