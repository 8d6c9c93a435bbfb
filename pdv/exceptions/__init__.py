"""Custom exceptions for the PDV order core."""
from decimal import Decimal

from pdv.utils.formatters import datetime_br


def _fmt_qty(value) -> str:
    value = Decimal(str(value))
    if value % 1 == 0:
        return f"{int(value)}"
    return f"{value:.2f}".rstrip('0').rstrip('.')


class PdvError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="Ocorreu um erro interno", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['error'] = type(self).__name__
        return rv


class ValidationError(PdvError):
    """Operator input rejected; order state untouched."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class PolicyError(PdvError):
    """Discount policy violation (e.g. missing manager token)."""
    def __init__(self, message, percent=None, threshold=None):
        payload = {}
        if percent is not None:
            payload['percent'] = str(percent)
        if threshold is not None:
            payload['threshold'] = str(threshold)
        super().__init__(message, 403, payload)
        self.percent = percent
        self.threshold = threshold


class PaymentMismatchError(PdvError):
    """
    Tendered amounts do not reconcile with the order total.

    ``difference`` is signed: ``total - paid``. Positive means shortfall,
    negative means overage.
    """
    def __init__(self, message, difference=None):
        payload = {'difference': str(difference)} if difference is not None else None
        super().__init__(message, 422, payload)
        self.difference = difference


class ConsistencyError(PdvError):
    """Stored state does not allow the requested operation."""
    def __init__(self, message, status_code=409, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(ConsistencyError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Registro não encontrado", payload=None):
        super().__init__(message, 404, payload)


class AlreadySettledError(ConsistencyError):
    """Raised when completing a sale that is already completed."""
    def __init__(self, sale_id, finished_at=None):
        message = f'Venda #{sale_id} já concluída'
        if finished_at is not None:
            message = f'{message} em {datetime_br(finished_at)}'
        super().__init__(message)
        self.sale_id = sale_id
        self.finished_at = finished_at


class InvalidTransitionError(ConsistencyError):
    """Raised when a status transition is not allowed from the current status."""
    def __init__(self, sale_id, current, target):
        current_str = current.value if hasattr(current, 'value') else str(current)
        target_str = target.value if hasattr(target, 'value') else str(target)
        super().__init__(
            f'Venda #{sale_id}: transição {current_str} -> {target_str} não permitida',
            payload={'current_status': current_str, 'target_status': target_str}
        )
        self.sale_id = sale_id
        self.current = current
        self.target = target


class InsufficientStockError(ConsistencyError):
    """Raised when completing a sale would drive stock below zero."""
    def __init__(self, product_name, required, available):
        message = (
            f"Estoque insuficiente para {product_name}: "
            f"necessário {_fmt_qty(required)}, disponível {_fmt_qty(available)}"
        )
        super().__init__(message, payload={'product': product_name})
        self.product_name = product_name
        self.required = required
        self.available = available
