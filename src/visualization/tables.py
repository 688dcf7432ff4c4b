"""
Table output: HTML for the report and CSV for re-use.
"""
from pathlib import Path
from typing import Dict

import pandas as pd


def save_table(
    table: pd.DataFrame,
    path: Path,
    title: str = "",
    decimals: int = 3,
    index: bool = True
) -> Dict[str, Path]:
    """
    Write `table` as <path>.html and <path>.csv.

    Returns:
        Dictionary with the 'html' and 'csv' paths
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rounded = table.round(decimals)
    html_path = path.with_suffix('.html')
    csv_path = path.with_suffix('.csv')

    html = rounded.to_html(index=index, na_rep='NA', border=0, classes='results')
    if title:
        html = f"<h3>{title}</h3>\n" + html
    html_path.write_text(html)
    table.to_csv(csv_path, index=index)

    print(f"  ✓ {html_path.name}, {csv_path.name}")
    return {'html': html_path, 'csv': csv_path}
