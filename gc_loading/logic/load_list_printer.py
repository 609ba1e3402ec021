from __future__ import annotations

import html
import logging
import sys
import webbrowser
from datetime import datetime
from pathlib import Path

from weasyprint import HTML

from gc_loading.config import TEMP_DIR
from gc_loading.logic.load_list import LoadList
from gc_loading.logic.package_range import format_runs

logger = logging.getLogger(__name__)

HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Load List</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 20px; }}
        .report-title {{ font-size: 24px; font-weight: bold; text-align: center; }}
        .item-table {{ width: 100%; border-collapse: collapse; margin-top: 20px; }}
        .item-table th, .item-table td {{ border: 1px solid black; padding: 6px; text-align: center; vertical-align: top; }}
        .item-table th {{ background-color: #f2f2f2; font-weight: bold; }}
        .total-row td {{ font-weight: bold; background-color: #EAEAEA; }}
        @media print {{
            @page {{ size: landscape; }}
            thead {{ display: table-header-group; }}
        }}
    </style>
</head>
<body>
    <div class="report-title">LOAD LIST</div>
    <p><strong>PRINTED ON: {print_date}</strong> &nbsp; <strong>GCs:</strong> {gc_count}</p>
    <table class="item-table">
        <thead>
            <tr>
                <th>GODOWN</th>
                <th>GC NO.</th>
                <th>CONSIGNOR</th>
                <th>CONSIGNEE</th>
                <th>PACKING</th>
                <th>CONTENTS</th>
                <th>QTY</th>
                <th>PKG NOS.</th>
            </tr>
        </thead>
        <tbody>
            {table_rows}
            <tr class="total-row">
                <td colspan="6">GRAND TOTAL</td>
                <td>{grand_total}</td>
                <td></td>
            </tr>
        </tbody>
    </table>
</body>
</html>
"""

TABLE_ROW_TEMPLATE = """
<tr>
    <td>{storage_location}</td>
    <td>{gc_numbers}</td>
    <td>{sender}</td>
    <td>{receiver}</td>
    <td>{packing}</td>
    <td>{contents}</td>
    <td><strong>{quantity}</strong></td>
    <td>{package_range}</td>
</tr>
"""


def create_load_list_html(load_list: LoadList) -> str:
    """Generates the HTML content for a load list."""
    if not load_list.groups:
        return "<h1>No GCs selected for this load list.</h1>"

    table_rows_html = ""
    for group in load_list.groups:
        table_rows_html += TABLE_ROW_TEMPLATE.format(
            storage_location=html.escape(group.storage_location),
            gc_numbers=html.escape(", ".join(group.gc_numbers)),
            sender=html.escape(group.sender_name),
            receiver=html.escape(group.receiver_name),
            packing=html.escape(group.packing_label),
            contents=html.escape(group.content_label),
            quantity=group.total_quantity,
            package_range=html.escape(format_runs(group.package_numbers) or "-"),
        )

    return HTML_TEMPLATE.format(
        print_date=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        gc_count=load_list.gc_count,
        table_rows=table_rows_html,
        grand_total=load_list.grand_total,
    )


def _get_temp_filepath(filename: str) -> Path:
    """Gets the temp path, using the bundle folder when running frozen."""
    if hasattr(sys, "_MEIPASS"):
        temp_dir = Path(sys._MEIPASS)
    else:
        temp_dir = Path(TEMP_DIR)
    temp_dir.mkdir(parents=True, exist_ok=True)
    return temp_dir / filename


def preview_load_list(html_content: str) -> Path:
    """Saves HTML to a temp file and opens it in a web browser for preview."""
    filepath = _get_temp_filepath("load_list_preview.html")
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(html_content)
    webbrowser.open(f"file://{filepath.resolve()}")
    return filepath


def generate_load_list_pdf(html_content: str, filename: str = "load_list.pdf") -> Path:
    """Renders the HTML content into a PDF in the temp folder."""
    pdf_path = _get_temp_filepath(filename)
    HTML(string=html_content).write_pdf(pdf_path)
    logger.info("Load list PDF written to %s", pdf_path)
    return pdf_path
