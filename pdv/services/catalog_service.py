"""Catalog reader/writer - the only place the order core touches product rows."""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from pdv.models import Product
from pdv.exceptions import NotFoundError, ConsistencyError

logger = logging.getLogger(__name__)


def read_product(session: Session, product_id: int, for_update: bool = False) -> Product:
    """Current product snapshot (price, stock, active...)."""
    query = session.query(Product).filter(Product.id == product_id)
    if for_update:
        query = query.with_for_update()
    product = query.first()
    if not product:
        raise NotFoundError(f'Produto #{product_id} não encontrado')
    return product


def write_product_stock(session: Session, product_id: int, new_stock: Decimal) -> Product:
    """Overwrite a product's stock. Stock can never go below zero."""
    if new_stock < 0:
        raise ConsistencyError(f'Estoque negativo não permitido para o produto #{product_id}')
    product = read_product(session, product_id)
    product.stock = new_stock
    session.flush()
    logger.debug(f"Stock written: product={product_id} stock={new_stock}")
    return product


def lock_products(session: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
    """
    Lock product rows FOR UPDATE and return them by id.

    Rows are locked in id order so two concurrent completions touching the
    same products cannot deadlock.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    products = session.query(Product).filter(
        Product.id.in_(ids)
    ).order_by(Product.id).with_for_update().all()
    found = {p.id: p for p in products}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFoundError(f'Produto(s) não encontrado(s): {", ".join(str(m) for m in missing)}')
    return found


def search_products(session: Session, search_query: str = '', limit: int = 50) -> List[Product]:
    """Active products whose name or code contains the query (POS search box)."""
    query = session.query(Product).filter(Product.active == True)  # noqa: E712
    if search_query:
        # Sanitize input (limit length)
        term = f"%{search_query[:100].strip()}%"
        query = query.filter(or_(Product.name.ilike(term), Product.code.ilike(term)))
    return query.order_by(Product.name).limit(limit).all()


def product_to_dict(product: Product) -> dict:
    return {
        'id': product.id,
        'code': product.code,
        'name': product.name,
        'description': product.description or '',
        'category': product.category or '',
        'unit': product.unit,
        'price': str(product.price),
        'stock': str(product.stock),
        'active': product.active,
    }
