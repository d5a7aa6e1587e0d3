"""Reward store and order service.

This module contains the business logic for the family reward store:
- Managing rewards (parents)
- Redeeming rewards into orders (children), paid through the ledger
- Verifying orders once the reward is handed over
- Cancelling orders with a refund

Routes should delegate to this service and handle HTTP responses.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm.exc import StaleDataError

from homequest.models import db, Order, Reward, User
from homequest.services.errors import (
    ConflictError, ForbiddenError, InvalidInputError, InvalidTransitionError, NotFoundError
)
from homequest.services.ledger_service import LedgerService
from homequest.utils.timezone import resolve_now, to_naive_utc
from homequest.utils.webhooks import fire_webhook

logger = logging.getLogger(__name__)

VERIFICATION_CODE_ALPHABET = string.ascii_uppercase + string.digits
VERIFICATION_CODE_LENGTH = 6


def generate_verification_code() -> str:
    return ''.join(secrets.choice(VERIFICATION_CODE_ALPHABET) for _ in range(VERIFICATION_CODE_LENGTH))


class RewardService:
    """Service for the reward catalog."""

    @staticmethod
    def get_reward(reward_id: int, user: Optional[User] = None) -> Reward:
        """Get a reward by ID, scoped to the user's family when given."""
        reward = db.session.get(Reward, reward_id)
        if not reward or (user is not None and reward.parent.family_id != user.family_id):
            raise NotFoundError(f'Reward {reward_id} not found')
        return reward

    @staticmethod
    def list_rewards(user: User, active_only: bool = False) -> List[Reward]:
        family_parents = db.session.query(User.id).filter(
            User.family_id == user.family_id, User.role == 'parent'
        )
        query = Reward.query.filter(Reward.parent_id.in_(family_parents))
        if active_only or not user.is_parent:
            query = query.filter(Reward.is_active.is_(True))
        return query.order_by(Reward.points, Reward.id).all()

    @staticmethod
    def create_reward(parent: User, data: dict) -> Reward:
        reward = Reward(
            parent_id=parent.id,
            name=data['name'],
            description=data.get('description'),
            points=data['points'],
            reward_type=data.get('reward_type', 'physical'),
            icon=data.get('icon'),
            stock=data.get('stock', -1),
            is_active=data.get('is_active', True)
        )
        db.session.add(reward)
        db.session.commit()
        logger.info(f"Parent {parent.id} created reward {reward.id} ({reward.name})")
        return reward

    @staticmethod
    def update_reward(reward_id: int, parent: User, data: dict) -> Reward:
        reward = RewardService.get_reward(reward_id, parent)
        for field in ('name', 'description', 'points', 'reward_type', 'icon', 'stock', 'is_active'):
            if field in data:
                setattr(reward, field, data[field])
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            raise ConflictError(f'Reward {reward_id} was modified concurrently, please retry')
        return reward


class OrderService:
    """Service for reward redemptions."""

    @staticmethod
    def get_order(order_id: int, user: User) -> Order:
        order = db.session.get(Order, order_id)
        if not order or order.child is None or order.child.family_id != user.family_id:
            raise NotFoundError(f'Order {order_id} not found')
        if not user.is_parent and order.child_id != user.id:
            raise ForbiddenError('This order belongs to someone else')
        return order

    @staticmethod
    def list_orders(user: User, status: Optional[str] = None) -> List[Order]:
        if user.is_parent:
            family_children = db.session.query(User.id).filter(
                User.family_id == user.family_id, User.role == 'child'
            )
            query = Order.query.filter(Order.child_id.in_(family_children))
        else:
            query = Order.query.filter_by(child_id=user.id)

        if status:
            query = query.filter_by(status=status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    @staticmethod
    def create_order(child: User, reward_id: int) -> Order:
        """
        Redeem a reward.

        The ledger debit, the stock decrement and the order row are
        committed together. When the child cannot pay, nothing is written.

        Raises:
            NotFoundError: Reward not found in the child's family
            InvalidInputError: Reward inactive or sold out
            InsufficientFundsError: Balance plus credit does not cover the price
            ConflictError: Reward or account changed concurrently
        """
        if child.is_parent:
            raise ForbiddenError('Only children can redeem rewards')

        reward = RewardService.get_reward(reward_id, child)

        if not reward.is_active:
            raise InvalidInputError(f'Reward "{reward.name}" is not available')

        if reward.stock == 0:
            raise InvalidInputError(f'Reward "{reward.name}" is sold out')

        try:
            txn = None
            if reward.points > 0:
                txn = LedgerService.spend(child.id, reward.points, f'Redeemed reward: {reward.name}',
                                          commit=False)

            if not reward.has_unlimited_stock:
                reward.stock -= 1

            order = Order(
                parent_id=reward.parent_id,
                child_id=child.id,
                reward_id=reward.id,
                reward_name=reward.name,
                reward_icon=reward.icon,
                points_spent=reward.points,
                status='pending',
                verification_code=generate_verification_code()
            )
            db.session.add(order)
            db.session.flush()

            if txn is not None:
                txn.related_order_id = order.id
            db.session.commit()

        except StaleDataError:
            db.session.rollback()
            raise ConflictError(f'Reward "{reward.name}" changed while ordering, please retry')
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Child {child.id} ordered reward {reward.id} for {order.points_spent} points "
                    f"(order {order.id}, code {order.verification_code})")
        fire_webhook('order_created', order)
        return order

    @staticmethod
    def verify_order(order_id: int, parent: User, now: Optional[datetime] = None) -> Order:
        order = OrderService.get_order(order_id, parent)
        if order.status != 'pending':
            raise InvalidTransitionError(f'Cannot verify order with status "{order.status}"')

        order.status = 'verified'
        order.verified_at = to_naive_utc(resolve_now(now))
        db.session.commit()

        logger.info(f"Parent {parent.id} verified order {order_id}")
        return order

    @staticmethod
    def cancel_order(order_id: int, user: User, now: Optional[datetime] = None) -> Order:
        """
        Cancel a pending order, refunding its points and returning finite stock.
        """
        order = OrderService.get_order(order_id, user)
        if order.status != 'pending':
            raise InvalidTransitionError(f'Cannot cancel order with status "{order.status}"')

        try:
            order.status = 'cancelled'
            order.cancelled_at = to_naive_utc(resolve_now(now))

            if order.points_spent > 0:
                LedgerService.deposit(order.child_id, order.points_spent,
                                      f'Refund: {order.reward_name}',
                                      related_order_id=order.id, commit=False)

            reward = db.session.get(Reward, order.reward_id)
            if reward and not reward.has_unlimited_stock:
                reward.stock += 1

            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            raise ConflictError(f'Order {order_id} changed while cancelling, please retry')
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Order {order_id} cancelled, refunded {order.points_spent} points to child {order.child_id}")
        return order
