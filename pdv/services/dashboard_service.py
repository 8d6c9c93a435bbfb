"""
Dashboard service.
Provides aggregated sales figures and low-stock products for the dashboard.
"""

from datetime import datetime, date, time, timedelta
from decimal import Decimal

from sqlalchemy import func

from pdv.models import Sale, Product, SaleStatus


def get_dashboard_data(session, start_dt: datetime, end_dt: datetime, low_stock_threshold=Decimal('5')) -> dict:
    """
    Get all dashboard data for a date range.

    Args:
        session: SQLAlchemy session
        start_dt: Start datetime (inclusive)
        end_dt: End datetime (exclusive)
        low_stock_threshold: products at or below this stock are listed

    Returns:
        dict with keys:
            - revenue: Decimal, total of sales completed in the range
            - completed_count: int
            - status_counts: dict of status value -> count (all time)
            - pending_count: int, size of the cashier queue
            - product_count: int, active products
            - low_stock_products: list of dicts
            - recent_sales: list of dicts (last 5 completed)
    """
    revenue = session.query(
        func.coalesce(func.sum(Sale.total_value), 0)
    ).filter(
        Sale.status == SaleStatus.COMPLETED,
        Sale.finished_at >= start_dt,
        Sale.finished_at < end_dt
    ).scalar()

    completed_count = session.query(func.count(Sale.id)).filter(
        Sale.status == SaleStatus.COMPLETED,
        Sale.finished_at >= start_dt,
        Sale.finished_at < end_dt
    ).scalar() or 0

    status_counts = {status.value: 0 for status in SaleStatus}
    for status, count in session.query(Sale.status, func.count(Sale.id)).group_by(Sale.status).all():
        status_counts[status.value] = count

    product_count = session.query(func.count(Product.id)).filter(
        Product.active == True
    ).scalar() or 0

    low_stock_products = session.query(Product).filter(
        Product.active == True,
        Product.stock <= low_stock_threshold
    ).order_by(Product.stock.asc(), Product.name).limit(10).all()

    recent_sales = session.query(Sale).filter(
        Sale.status == SaleStatus.COMPLETED
    ).order_by(Sale.finished_at.desc()).limit(5).all()

    return {
        'revenue': Decimal(str(revenue or 0)),
        'completed_count': completed_count,
        'status_counts': status_counts,
        'pending_count': status_counts[SaleStatus.PENDING.value],
        'product_count': product_count,
        'low_stock_products': [
            {
                'id': product.id,
                'code': product.code,
                'name': product.name,
                'stock': Decimal(str(product.stock)),
                'unit': product.unit,
            }
            for product in low_stock_products
        ],
        'recent_sales': [
            {
                'id': sale.id,
                'client_name': sale.client_name or '',
                'total_value': Decimal(str(sale.total_value)),
                'finished_at': sale.finished_at,
            }
            for sale in recent_sales
        ],
    }


def get_today_datetime_range():
    """
    Get datetime range for today (local server time).

    Returns:
        tuple: (start_dt, end_dt) where start is 00:00:00 and end is the next midnight
    """
    today = date.today()
    start_dt = datetime.combine(today, time.min)
    end_dt = start_dt + timedelta(days=1)

    return start_dt, end_dt
