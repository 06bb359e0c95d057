"""
Application error taxonomy.

Services raise these; the handlers registered in main.py turn them into the
`{"success": false, "error": ...}` envelope with the matching status code.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class ConflictError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class BusinessRuleError(AppError):
    status_code = 400


class EmptyCartError(BusinessRuleError):
    def __init__(self):
        super().__init__("cart is empty")


class ProductUnavailableError(BusinessRuleError):
    def __init__(self, product_name: str):
        super().__init__(f"product not active: {product_name}")
        self.product_name = product_name


class InsufficientStockError(BusinessRuleError):
    def __init__(self, product_name: str):
        super().__init__(f"insufficient stock: {product_name}")
        self.product_name = product_name


class DependencyError(AppError):
    status_code = 503


class InternalError(AppError):
    status_code = 500
