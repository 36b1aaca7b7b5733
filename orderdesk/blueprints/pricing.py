"""Pricing blueprint - JSON endpoints for margins, fees and client prices."""
from flask import Blueprint, request, jsonify, current_app

from orderdesk.database import get_session
from orderdesk.exceptions import BusinessLogicError, ValidationError
from orderdesk.services import config_service, pricing_service, recalculation_service
from orderdesk.services.margin_resolver import PriceCategory
from orderdesk.services.order_service import get_order, get_line_item
from orderdesk.services.price_calculator import compute_client_price
from orderdesk.services.margin_resolver import UNCHANGED
from orderdesk.services.recalculation_service import RecalculationOptions, RecalculationValues
from orderdesk.services.shipping_link_service import link_shipping
from orderdesk.utils.number_format import decimal_to_str

pricing_bp = Blueprint('pricing', __name__, url_prefix='/pricing')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _field(data: dict, key: str):
    """Value of key, or UNCHANGED when the key is absent (null means clear)."""
    return data[key] if key in data else UNCHANGED


def _defaults_to_dict(defaults) -> dict:
    return {
        category.value: {
            'value': str(defaults.effective(category)),
            'configured': defaults.for_category(category) is not None,
        }
        for category in PriceCategory
    }


def _item_to_dict(item) -> dict:
    return {
        'id': item.id,
        'product_order_number': item.product_order_number,
        'is_clothing': item.is_clothing,
        'product_price': decimal_to_str(item.product_price),
        'client_product_price': decimal_to_str(item.client_product_price),
        'shipping_air_price': decimal_to_str(item.shipping_air_price),
        'client_shipping_air_price': decimal_to_str(item.client_shipping_air_price),
        'shipping_boat_price': decimal_to_str(item.shipping_boat_price),
        'client_shipping_boat_price': decimal_to_str(item.client_shipping_boat_price),
        'sample_fee': decimal_to_str(item.sample_fee),
        'client_sample_fee': decimal_to_str(item.client_sample_fee),
        'margin_applied': decimal_to_str(item.margin_applied),
        'product_margin_override': decimal_to_str(item.product_margin_override),
        'shipping_margin_override': decimal_to_str(item.shipping_margin_override),
        'clothing_fee_override': decimal_to_str(item.clothing_fee_override),
        'shipping_link_note': item.shipping_link_note,
    }


@pricing_bp.route('/defaults', methods=['GET'])
def get_defaults():
    """System defaults with the safety default filled in where a row is missing."""
    defaults = config_service.load_system_defaults(get_session())
    return jsonify({'status': 'ok', 'defaults': _defaults_to_dict(defaults)})


@pricing_bp.route('/defaults', methods=['PUT'])
def update_defaults():
    data = _json_body()
    defaults = config_service.update_system_defaults(get_session(), **data)
    current_app.logger.info(f"[PRICING] Defaults updated via API: {sorted(data)}")
    return jsonify({'status': 'ok', 'defaults': _defaults_to_dict(defaults)})


@pricing_bp.route('/clients/<int:client_id>/overrides', methods=['PUT'])
def update_client_overrides(client_id: int):
    data = _json_body()
    override = config_service.set_client_override(
        get_session(),
        client_id,
        product_margin_pct=_field(data, 'product_margin_pct'),
        shipping_margin_pct=_field(data, 'shipping_margin_pct'),
        sample_margin_pct=_field(data, 'sample_margin_pct')
    )
    return jsonify({
        'status': 'ok',
        'client_id': client_id,
        'product_margin_pct': decimal_to_str(override.custom_margin_percentage),
        'shipping_margin_pct': decimal_to_str(override.custom_shipping_margin_percentage),
        'sample_margin_pct': decimal_to_str(override.custom_sample_margin_percentage),
    })


@pricing_bp.route('/items/<int:item_id>/rates', methods=['GET'])
def item_rates(item_id: int):
    rates = pricing_service.resolve_item_rates(get_session(), item_id)
    return jsonify({
        'status': 'ok',
        'item_id': item_id,
        'rates': {category.value: rate.to_dict() for category, rate in rates.items()},
    })


@pricing_bp.route('/quote', methods=['POST'])
def quote():
    """Client price for a cost and a rate or fee, without touching any record."""
    data = _json_body()
    try:
        category = PriceCategory(data.get('category'))
    except ValueError:
        raise ValidationError(f"Unknown category: {data.get('category')!r}", field='category')
    if data.get('cost') is None or data.get('rate') is None:
        raise ValidationError('cost and rate are required')

    price = compute_client_price(data['cost'], data['rate'], category)
    return jsonify({'status': 'ok', 'category': category.value, 'client_price': str(price)})


@pricing_bp.route('/items/<int:item_id>/costs', methods=['POST'])
def submit_costs(item_id: int):
    data = _json_body()
    item = pricing_service.submit_manufacturer_costs(
        get_session(),
        item_id,
        product_price=_field(data, 'product_price'),
        shipping_air_price=_field(data, 'shipping_air_price'),
        shipping_boat_price=_field(data, 'shipping_boat_price'),
        sample_fee=_field(data, 'sample_fee')
    )
    return jsonify({'status': 'ok', 'item': _item_to_dict(item)})


@pricing_bp.route('/items/<int:item_id>/override', methods=['POST'])
def save_override(item_id: int):
    data = _json_body()
    item = pricing_service.save_item_override(
        get_session(),
        item_id,
        product_margin=_field(data, 'product_margin'),
        shipping_margin=_field(data, 'shipping_margin'),
        clothing_fee=_field(data, 'clothing_fee')
    )
    return jsonify({'status': 'ok', 'item': _item_to_dict(item)})


@pricing_bp.route('/orders/<int:order_id>/margin', methods=['POST'])
def save_margin(order_id: int):
    data = _json_body()
    margin, result = pricing_service.save_order_margin(
        get_session(),
        order_id,
        product_margin_pct=_field(data, 'product_margin_pct'),
        shipping_margin_pct=_field(data, 'shipping_margin_pct')
    )
    return jsonify({
        'status': 'ok',
        'order_id': order_id,
        'product_margin_pct': decimal_to_str(margin.margin_percentage),
        'shipping_margin_pct': decimal_to_str(margin.shipping_margin_percentage),
        'result': result.to_dict(),
    })


@pricing_bp.route('/orders/<int:order_id>/shipping-links', methods=['POST'])
def save_shipping_links(order_id: int):
    session = get_session()
    data = _json_body()
    try:
        primary_id = int(data.get('primary_item_id'))
    except (TypeError, ValueError):
        raise ValidationError('primary_item_id is required', field='primary_item_id')

    primary = get_line_item(session, primary_id)
    if primary.order_id != order_id:
        raise BusinessLogicError(f'Line item {primary_id} does not belong to order {order_id}')

    result = link_shipping(session, primary.id, data.get('covered_item_ids') or [])
    body = {'status': 'ok', **result.to_dict()}
    if result.released:
        body['warning'] = result.released.message
    return jsonify(body)


@pricing_bp.route('/orders/<int:order_id>/recalculate', methods=['POST'])
def recalculate(order_id: int):
    data = _json_body()
    options = RecalculationOptions(
        regular_products=bool(data.get('regular_products')),
        clothing_products=bool(data.get('clothing_products')),
        samples=bool(data.get('samples')),
        shipping=bool(data.get('shipping')),
        accessories=bool(data.get('accessories'))
    )
    values = RecalculationValues(
        product_margin=data.get('product_margin'),
        clothing_fee=data.get('clothing_fee'),
        sample_margin=data.get('sample_margin'),
        shipping_margin=data.get('shipping_margin'),
        accessory_margin=data.get('accessory_margin')
    )
    result = recalculation_service.recalculate_order(get_session(), order_id, options, values)
    return jsonify({
        'status': 'ok',
        'message': f'Recalculated {result.updated} records',
        **result.to_dict(),
    })


@pricing_bp.route('/orders/<int:order_id>/totals', methods=['GET'])
def order_totals(order_id: int):
    order = get_order(get_session(), order_id)
    totals = pricing_service.compute_order_totals(order)
    return jsonify({'status': 'ok', 'order_id': order_id, 'totals': totals.to_dict()})
