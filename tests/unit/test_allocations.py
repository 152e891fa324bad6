"""
Tests for allocation helpers.
"""

from sqlalchemy.dialects import postgresql

from vitalvida.api.routers.allocations import product_stock_status, select_product_for_update
from vitalvida.db.models import Product


def test_product_is_loaded_with_row_lock():
    sql = str(select_product_for_update(7).compile(dialect=postgresql.dialect()))

    assert sql.rstrip().endswith("FOR UPDATE")
    assert "vitalvida_products.id" in sql


def test_product_stock_status():
    assert product_stock_status(Product(stock_level=0, min_stock=5)) == "Out of Stock"
    assert product_stock_status(Product(stock_level=5, min_stock=5)) == "Low Stock"
    assert product_stock_status(Product(stock_level=6, min_stock=5)) == "In Stock"
    assert product_stock_status(Product(stock_level=1, min_stock=None)) == "In Stock"
