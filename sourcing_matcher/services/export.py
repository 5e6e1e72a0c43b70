"""CSV export of per-row match results (one line per row, best match only)."""
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from sourcing_matcher.models.jobs import MatchResult
from sourcing_matcher.services.rows import extract_product_name
from sourcing_matcher.services.scoring import find_stock_level

EXPORT_COLUMNS = [
    "Product Name",
    "SKU",
    "Price",
    "Currency",
    "MOQ",
    "Lead Time (days)",
    "Landed Cost",
    "Landed Cost Currency",
    "ETA (days)",
    "Overall Score (%)",
    "Reliability Score (%)",
    "Ranking Score",
    "Supplier Name",
    "Platform",
    "Product URL",
    "Stock",
    "Created At",
    "Status",
]


def result_to_export_row(result: MatchResult) -> Dict[str, Any]:
    """Flatten one result and its best match into export columns."""
    best = result.best_match
    stock = find_stock_level(best) if best else None
    return {
        "Product Name": extract_product_name(result.original_product),
        "SKU": result.sku,
        "Price": best.price if best else None,
        "Currency": best.currency if best else None,
        "MOQ": best.moq if best else None,
        "Lead Time (days)": best.lead_time_days if best else None,
        "Landed Cost": result.landed_cost_value,
        "Landed Cost Currency": result.landed_cost_currency,
        "ETA (days)": result.eta_days,
        "Overall Score (%)": best.match_score if best else None,
        "Reliability Score (%)": result.reliability_score,
        "Ranking Score": result.ranking_score,
        "Supplier Name": best.provider_name if best else None,
        "Platform": best.provider_id if best else None,
        "Product URL": best.supplier_url if best else None,
        "Stock": int(stock) if stock is not None else None,
        "Created At": result.created_at.isoformat(),
        "Status": result.status.value,
    }


def results_to_export_rows(results: Sequence[MatchResult]) -> List[Dict[str, Any]]:
    return [result_to_export_row(result) for result in results]


def results_to_dataframe(results: Sequence[MatchResult]) -> pd.DataFrame:
    """Results as a DataFrame with the export columns in order."""
    frame = pd.DataFrame(results_to_export_rows(results), columns=EXPORT_COLUMNS)
    # Keep integer columns integer when some rows are empty
    for column in ("MOQ", "Lead Time (days)", "ETA (days)", "Overall Score (%)",
                   "Reliability Score (%)", "Ranking Score", "Stock"):
        frame[column] = frame[column].astype("Int64")
    return frame


def export_results_csv(
    results: Sequence[MatchResult],
    path_or_buffer: Optional[Union[str, Path, IO[str]]] = None,
) -> str:
    """Render results as CSV, optionally writing them to a path or buffer.

    Returns:
        The CSV text
    """
    csv_text = results_to_dataframe(results).to_csv(index=False)
    if isinstance(path_or_buffer, (str, Path)):
        Path(path_or_buffer).write_text(csv_text, encoding="utf-8")
    elif path_or_buffer is not None:
        path_or_buffer.write(csv_text)
    return csv_text
