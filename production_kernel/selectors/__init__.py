"""Read-only selectors returning frozen DTOs."""

from production_kernel.selectors.order_selector import OrderSelector

__all__ = ["OrderSelector"]
