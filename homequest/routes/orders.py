"""Order (reward redemption) API endpoints."""

import logging

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, parent_required, get_current_user
from homequest.schemas import ORDER_CREATE_SCHEMA, validate_payload
from homequest.services.order_service import OrderService

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')
logger = logging.getLogger(__name__)


@orders_bp.route('', methods=['GET'])
@auth_required
def list_orders():
    orders = OrderService.list_orders(get_current_user(), status=request.args.get('status'))
    return jsonify({
        'success': True,
        'data': [order.to_dict() for order in orders]
    })


@orders_bp.route('', methods=['POST'])
@auth_required
def create_order():
    """Child redeems a reward. Points are debited immediately."""
    data = validate_payload(ORDER_CREATE_SCHEMA, request.get_json(silent=True))
    order = OrderService.create_order(get_current_user(), data['reward_id'])
    return jsonify({
        'success': True,
        'data': order.to_dict(),
        'message': f'Reward redeemed, verification code {order.verification_code}'
    }), 201


@orders_bp.route('/<int:order_id>', methods=['GET'])
@auth_required
def get_order(order_id):
    order = OrderService.get_order(order_id, get_current_user())
    return jsonify({'success': True, 'data': order.to_dict()})


@orders_bp.route('/<int:order_id>/verify', methods=['POST'])
@auth_required
@parent_required
def verify_order(order_id):
    order = OrderService.verify_order(order_id, get_current_user())
    return jsonify({'success': True, 'data': order.to_dict(), 'message': 'Order verified'})


@orders_bp.route('/<int:order_id>/cancel', methods=['POST'])
@auth_required
def cancel_order(order_id):
    """Cancel a pending order and refund its points."""
    order = OrderService.cancel_order(order_id, get_current_user())
    return jsonify({
        'success': True,
        'data': order.to_dict(),
        'message': f'Order cancelled, {order.points_spent} points refunded'
    })
