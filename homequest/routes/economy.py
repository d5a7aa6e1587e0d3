"""Economy API endpoints.

Reads expose the account and its ledger. All writes go through a single
``POST /api/economy`` endpoint whose body is a tagged variant keyed by
``action``.
"""

import logging

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, get_current_user
from homequest.models import db, User
from homequest.schemas import validate_economy_action
from homequest.services.errors import ForbiddenError
from homequest.services.ledger_service import LedgerService
from homequest.services.task_service import TaskService

economy_bp = Blueprint('economy', __name__, url_prefix='/api/economy')
logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS = 10


def resolve_target(user: User, child_id=None) -> User:
    """Parents may address a child of their family; children only themselves."""
    if child_id is None or child_id == user.id:
        return user
    if not user.is_parent:
        raise ForbiddenError("Children can only access their own account")
    return TaskService.get_family_child(user, child_id)


def require_parent(user: User, action: str) -> None:
    if not user.is_parent:
        raise ForbiddenError(f'Only parents can perform "{action}"')


@economy_bp.route('', methods=['GET'])
@auth_required
def get_account():
    """Account balances plus the most recent transactions."""
    target = resolve_target(get_current_user(), request.args.get('child_id', type=int))
    account = LedgerService.get_account(target.id)
    transactions, _ = LedgerService.list_transactions(target.id, limit=RECENT_TRANSACTIONS)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'account': account.to_dict(),
            'recent_transactions': [txn.to_dict() for txn in transactions]
        }
    })


@economy_bp.route('/transactions', methods=['GET'])
@auth_required
def list_transactions():
    """Paginated ledger. Query params: child_id, limit, offset, type, currency."""
    target = resolve_target(get_current_user(), request.args.get('child_id', type=int))
    limit = min(request.args.get('limit', 20, type=int), 100)
    offset = max(request.args.get('offset', 0, type=int), 0)

    rows, total = LedgerService.list_transactions(
        target.id, limit=limit, offset=offset,
        txn_type=request.args.get('type'),
        currency=request.args.get('currency')
    )

    return jsonify({
        'success': True,
        'data': [txn.to_dict() for txn in rows],
        'pagination': {'total': total, 'limit': limit, 'offset': offset}
    })


@economy_bp.route('', methods=['POST'])
@auth_required
def economy_action():
    """Dispatch an economy action: deposit, spend, rewardStars, calculateInterest, adjustCredit."""
    user = get_current_user()
    data = validate_economy_action(request.get_json(silent=True))
    action = data['action']

    logger.info(f"Economy action {action} requested by user {user.id}")

    if action == 'deposit':
        require_parent(user, action)
        child = TaskService.get_family_child(user, data['child_id'])
        txn = LedgerService.deposit(child.id, data['amount'],
                                    data.get('description') or 'Allowance deposit')
        result = {'transaction': txn.to_dict()}

    elif action == 'spend':
        if user.is_parent:
            raise ForbiddenError('Only children can spend from their account')
        txn = LedgerService.spend(user.id, data['amount'], data.get('description') or 'Purchase')
        result = {'transaction': txn.to_dict()}

    elif action == 'rewardStars':
        require_parent(user, action)
        child = TaskService.get_family_child(user, data['child_id'])
        txn = LedgerService.reward_stars(child.id, data['amount'], data.get('description'))
        result = {'transaction': txn.to_dict()}

    elif action == 'calculateInterest':
        target = resolve_target(user, data.get('child_id'))
        interest = LedgerService.calculate_interest(target.id)
        db.session.commit()
        result = {'interest': interest}

    else:
        require_parent(user, action)
        child = TaskService.get_family_child(user, data['child_id'])
        LedgerService.adjust_credit(child.id, data['credit_limit'])
        result = {}

    target_id = data.get('child_id') or user.id
    result['account'] = LedgerService.get_account(target_id).to_dict()
    return jsonify({'success': True, 'data': result})
