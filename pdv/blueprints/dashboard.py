"""
Dashboard blueprint.
Today's revenue, cashier queue size, low-stock products and recent sales.
"""
from decimal import Decimal

from flask import Blueprint, jsonify, current_app

from pdv.database import get_session
from pdv.services.cache_service import get_cache
from pdv.services.dashboard_service import get_dashboard_data, get_today_datetime_range

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')


def _load_summary() -> dict:
    start_dt, end_dt = get_today_datetime_range()
    data = get_dashboard_data(
        get_session(), start_dt, end_dt,
        low_stock_threshold=Decimal(str(current_app.config.get('LOW_STOCK_THRESHOLD', 10)))
    )
    return {
        'date': start_dt.date().isoformat(),
        'revenue': str(data['revenue']),
        'completed_count': data['completed_count'],
        'status_counts': data['status_counts'],
        'pending_count': data['pending_count'],
        'product_count': data['product_count'],
        'low_stock_products': [
            dict(item, stock=str(item['stock'])) for item in data['low_stock_products']
        ],
        'recent_sales': [
            dict(
                item,
                total_value=str(item['total_value']),
                finished_at=item['finished_at'].isoformat() if item['finished_at'] else None
            )
            for item in data['recent_sales']
        ],
    }


@dashboard_bp.route('', methods=['GET'])
def index():
    """Dashboard summary, cached until the next sale is saved, completed or cancelled."""
    summary = get_cache().memoize(
        'dashboard', 'summary', _load_summary,
        ttl=current_app.config.get('CACHE_DASHBOARD_TTL', 60)
    )
    return jsonify({'status': 'success', 'dashboard': summary})
