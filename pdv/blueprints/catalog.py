"""Catalog blueprint - product lookup for the POS search box."""
from flask import Blueprint, request, jsonify

from pdv.database import get_session
from pdv.exceptions import ValidationError
from pdv.services.catalog_service import search_products, read_product, product_to_dict

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api/products')


@catalog_bp.route('', methods=['GET'])
def products_list():
    """Active products matching ``q`` on name or code."""
    search_query = request.args.get('q', '').strip()
    try:
        limit = min(int(request.args.get('limit', 50)), 200)
    except ValueError:
        raise ValidationError('Parâmetro limit inválido.')

    products = search_products(get_session(), search_query, limit)
    return jsonify({'status': 'success', 'products': [product_to_dict(p) for p in products]})


@catalog_bp.route('/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    product = read_product(get_session(), product_id)
    return jsonify({'status': 'success', 'product': product_to_dict(product)})
