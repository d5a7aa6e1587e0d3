"""Tests for rewards and orders."""

import re

import pytest

from homequest.models import db, Order, Reward, Transaction
from homequest.services.errors import (
    ForbiddenError, InsufficientFundsError, InvalidInputError, InvalidTransitionError, NotFoundError
)
from homequest.services.ledger_service import LedgerService
from homequest.services.order_service import OrderService, RewardService


class TestCreateOrder:
    """Redeeming a reward debits the ledger and decrements stock together."""

    def test_successful_order(self, db_session, child_user, reward):
        LedgerService.deposit(child_user.id, 100, 'Savings')

        order = OrderService.create_order(child_user, reward.id)

        assert order.status == 'pending'
        assert order.points_spent == 50
        assert order.reward_name == 'Ice cream'
        assert re.fullmatch(r'[A-Z0-9]{6}', order.verification_code)
        assert db.session.get(Reward, reward.id).stock == 4
        assert LedgerService.get_account(child_user.id).coins == 50

        txn = Transaction.query.filter_by(user_id=child_user.id, type='expense').one()
        assert txn.related_order_id == order.id

    def test_insufficient_funds_writes_nothing(self, db_session, child_user, reward):
        LedgerService.deposit(child_user.id, 30, 'Savings')
        LedgerService.adjust_credit(child_user.id, 0)

        with pytest.raises(InsufficientFundsError):
            OrderService.create_order(child_user, reward.id)

        assert Order.query.count() == 0
        assert db.session.get(Reward, reward.id).stock == 5
        assert LedgerService.get_account(child_user.id).coins == 30

    def test_order_on_credit(self, db_session, child_user, reward):
        LedgerService.deposit(child_user.id, 30, 'Savings')

        OrderService.create_order(child_user, reward.id)

        account = LedgerService.get_account(child_user.id)
        assert account.coins == 0
        assert account.credit_used == 20

    def test_unlimited_stock_untouched(self, db_session, child_user, reward):
        reward.stock = -1
        db_session.commit()
        LedgerService.deposit(child_user.id, 100, 'Savings')

        OrderService.create_order(child_user, reward.id)

        assert db.session.get(Reward, reward.id).stock == -1

    def test_sold_out(self, db_session, child_user, reward):
        reward.stock = 0
        db_session.commit()

        with pytest.raises(InvalidInputError):
            OrderService.create_order(child_user, reward.id)

    def test_inactive_reward(self, db_session, child_user, reward):
        reward.is_active = False
        db_session.commit()

        with pytest.raises(InvalidInputError):
            OrderService.create_order(child_user, reward.id)

    def test_parent_cannot_order(self, db_session, parent_user, reward):
        with pytest.raises(ForbiddenError):
            OrderService.create_order(parent_user, reward.id)

    def test_other_family_reward_not_found(self, db_session, other_parent, child_user):
        foreign = Reward(parent_id=other_parent.id, name='Secret', points=1)
        db_session.add(foreign)
        db_session.commit()

        with pytest.raises(NotFoundError):
            OrderService.create_order(child_user, foreign.id)

    def test_free_reward_has_no_transaction(self, db_session, child_user, reward):
        reward.points = 0
        db_session.commit()

        order = OrderService.create_order(child_user, reward.id)

        assert order.points_spent == 0
        assert Transaction.query.filter_by(user_id=child_user.id).count() == 0


class TestOrderTransitions:

    @pytest.fixture
    def order(self, db_session, child_user, reward):
        LedgerService.deposit(child_user.id, 100, 'Savings')
        return OrderService.create_order(child_user, reward.id)

    def test_verify(self, db_session, parent_user, order):
        verified = OrderService.verify_order(order.id, parent_user)

        assert verified.status == 'verified'
        assert verified.verified_at is not None

        with pytest.raises(InvalidTransitionError):
            OrderService.cancel_order(order.id, parent_user)

    def test_cancel_refunds_and_restocks(self, db_session, parent_user, child_user, reward, order):
        cancelled = OrderService.cancel_order(order.id, child_user)

        assert cancelled.status == 'cancelled'
        assert LedgerService.get_account(child_user.id).coins == 100
        assert db.session.get(Reward, reward.id).stock == 5

        refund = Transaction.query.filter_by(user_id=child_user.id, related_order_id=order.id,
                                             type='income').one()
        assert refund.description == 'Refund: Ice cream'
        assert refund.amount == 50

        with pytest.raises(InvalidTransitionError):
            OrderService.verify_order(order.id, parent_user)

    def test_other_child_cannot_cancel(self, db_session, child_user_2, order):
        with pytest.raises(ForbiddenError):
            OrderService.cancel_order(order.id, child_user_2)

    def test_listing(self, db_session, parent_user, child_user, child_user_2, order):
        assert [o.id for o in OrderService.list_orders(parent_user)] == [order.id]
        assert [o.id for o in OrderService.list_orders(child_user)] == [order.id]
        assert OrderService.list_orders(child_user_2) == []
        assert OrderService.list_orders(parent_user, status='verified') == []


class TestRewards:

    def test_children_only_see_active(self, db_session, parent_user, child_user, reward):
        RewardService.create_reward(parent_user, {'name': 'Hidden', 'points': 5, 'is_active': False})

        assert len(RewardService.list_rewards(parent_user)) == 2
        assert [r.name for r in RewardService.list_rewards(child_user)] == ['Ice cream']

    def test_update_reward(self, db_session, parent_user, reward):
        updated = RewardService.update_reward(reward.id, parent_user, {'stock': 10, 'points': 60})
        assert updated.stock == 10
        assert updated.points == 60


class TestOrderApi:

    def test_insufficient_funds_envelope(self, client, db_session, child_user, child_headers, reward):
        LedgerService.adjust_credit(child_user.id, 0)

        response = client.post('/api/orders', json={'reward_id': reward.id}, headers=child_headers)

        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert body['error'] == 'InsufficientFundsError'
        assert Order.query.count() == 0

    def test_order_and_cancel(self, client, db_session, child_user, child_headers, parent_headers, reward):
        LedgerService.deposit(child_user.id, 60, 'Savings')

        response = client.post('/api/orders', json={'reward_id': reward.id}, headers=child_headers)
        assert response.status_code == 201
        order_id = response.get_json()['data']['id']

        response = client.post(f'/api/orders/{order_id}/cancel', headers=parent_headers)
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'cancelled'
        assert LedgerService.get_account(child_user.id).coins == 60
