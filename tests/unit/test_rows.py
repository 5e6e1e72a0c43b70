"""Unit tests for spreadsheet row interpretation."""
import pytest

from sourcing_matcher.errors import NameResolutionError
from sourcing_matcher.services.rows import (
    build_product_query,
    extract_description,
    extract_price,
    extract_product_name,
    extract_specs,
)


class TestExtractProductName:
    """Tests for extract_product_name."""

    def test_known_column_any_case(self):
        """Test name columns are matched case-insensitively."""
        assert extract_product_name({"Product Name": " Desk Lamp "}) == "Desk Lamp"
        assert extract_product_name({"TITLE": "Desk Lamp"}) == "Desk Lamp"

    def test_column_priority(self):
        """Test 'name' beats 'title' whatever the column order."""
        row = {"Title": "From title", "Name": "From name"}

        assert extract_product_name(row) == "From name"

    def test_blank_name_column_falls_through(self):
        """Test an empty name column does not stop the lookup."""
        assert extract_product_name({"name": "  ", "item": "Desk Lamp"}) == "Desk Lamp"

    def test_fallback_skips_ids_prices_urls_and_numbers(self):
        """Test the fallback picks the first name-like value."""
        row = {
            "Supplier ID": "ABC-123",
            "Unit Price": "12.50 USD",
            "link": "https://example.com/item",
            "code": "123,456",
            "Notes": "Brushed steel desk lamp",
        }

        assert extract_product_name(row) == "Brushed steel desk lamp"

    def test_nothing_name_like(self):
        """Test rows without a usable value give an empty name."""
        assert extract_product_name({"qty": 5, "price": 10}) == ""


class TestRowFields:
    """Tests for description, price and spec extraction."""

    def test_description(self):
        """Test description is trimmed and blank is None."""
        assert extract_description({"Description": " Warm light "}) == "Warm light"
        assert extract_description({"description": " "}) is None

    @pytest.mark.parametrize(
        "value,expected",
        [(20, 20.0), ("19.99", 19.99), ("$5", None), ("12 USD", 12.0), (0, None), (-3, None), (True, None)],
    )
    def test_price(self, value, expected):
        """Test positive prices are parsed from numbers and numeric strings."""
        assert extract_price({"Price": value}) == expected

    def test_specs(self):
        """Test spec columns are collected and empty ones dropped."""
        row = {"Color": "Black", "weight": " 1 kg ", "size": "", "name": "Lamp"}

        assert extract_specs(row) == {"color": "Black", "weight": "1 kg"}
        assert extract_specs({"name": "Lamp"}) is None


class TestBuildProductQuery:
    """Tests for build_product_query."""

    def test_builds_query(self):
        """Test a complete row becomes a query."""
        query = build_product_query({"Name": "Wireless Earbuds", "Price": 20, "Color": "white"})

        assert query.name == "Wireless Earbuds"
        assert query.price == 20
        assert query.specs == {"color": "white"}

    def test_missing_name_lists_columns(self):
        """Test a nameless row raises with the available columns."""
        with pytest.raises(NameResolutionError) as exc_info:
            build_product_query({"qty": 5, "price": 10})

        assert exc_info.value.message == "Product name not found. Available columns: qty, price"
        assert exc_info.value.columns == ["qty", "price"]
