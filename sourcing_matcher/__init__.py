"""Supplier catalog matcher.

Takes spreadsheet-derived product rows, searches supplier catalogs for each
row, scores, costs and ranks the candidates, and persists a best match plus
ranked alternatives per row.
"""

__version__ = "0.1.0"
