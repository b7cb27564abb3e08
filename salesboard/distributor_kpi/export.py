# salesboard/distributor_kpi/export.py
"""
Formatted Excel Export for Distributor KPIs

Creates an Excel workbook with:
- Summary sheet with one line per KPI
- One sheet per KPI result table
- Under-billed customer detail
- Agreement target vs achieved, with a colour scale on achievement

Uses openpyxl for formatting capabilities.
"""

import logging
from datetime import datetime
from io import BytesIO
from typing import List, Tuple

import pandas as pd
from openpyxl import Workbook
from openpyxl.formatting.rule import ColorScaleRule
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .constants import EXCEL_STYLES
from .report import KpiReport

logger = logging.getLogger(__name__)

# Excel sheet titles: max 31 chars, no []:*?/\
_BAD_TITLE_CHARS = str.maketrans({c: ' ' for c in '[]:*?/\\'})

Column = Tuple[str, str, int]


class KpiReportExport:
    """
    Excel report generator for a KpiReport.

    Usage:
        exporter = KpiReportExport()
        excel_bytes = exporter.create_report(report)

        with open('kpi_report.xlsx', 'wb') as fh:
            fh.write(excel_bytes.getvalue())
    """

    def __init__(self):
        """Initialize with default styles."""
        self.wb = None
        self._init_styles()

    def _init_styles(self):
        """Initialize reusable styles."""
        self.header_fill = PatternFill(
            start_color=EXCEL_STYLES['header_fill_color'],
            end_color=EXCEL_STYLES['header_fill_color'],
            fill_type='solid'
        )

        self.header_font = Font(
            bold=True,
            color=EXCEL_STYLES['header_font_color'],
            size=11
        )

        self.title_font = Font(bold=True, size=16)
        self.subtitle_font = Font(bold=True, size=12)

        thin_border = Side(style='thin', color='000000')
        self.cell_border = Border(
            left=thin_border,
            right=thin_border,
            top=thin_border,
            bottom=thin_border
        )

        self.center_align = Alignment(horizontal='center', vertical='center')
        self.right_align = Alignment(horizontal='right', vertical='center')

        self.volume_format = EXCEL_STYLES['volume_format']
        self.count_format = EXCEL_STYLES['count_format']
        self.percent_format = EXCEL_STYLES['percent_format']
        self.date_format = EXCEL_STYLES['date_format']

    # =========================================================================
    # MAIN EXPORT METHOD
    # =========================================================================

    def create_report(self, report: KpiReport) -> BytesIO:
        """
        Create formatted Excel report with multiple sheets.

        Args:
            report: Result of KpiReportService.build_report / run_catalog

        Returns:
            BytesIO containing Excel file
        """
        self.wb = Workbook()

        self._create_cover_sheet(report)
        for result in report.results.values():
            self._write_table(
                self._sheet_title(result.definition.short_key),
                result.to_frame(rounded=True),
                self._kpi_columns(result.definition.reported_keys, result.definition.unit),
            )

        self._write_table("Unbilled Detail", report.unbilled_frame(), [
            ('sales_exec_name', 'Sales Executive', 25),
            ('customer_code', 'Customer Code', 15),
            ('customer_name', 'Customer', 30),
            ('volume', 'Core Volume (Ltr)', 18),
        ])

        if report.agreements:
            self._create_agreement_sheet(report.agreement_frame())

        output = BytesIO()
        self.wb.save(output)
        output.seek(0)

        logger.info(f"Excel report created with {len(self.wb.sheetnames)} sheets")
        return output

    # =========================================================================
    # COVER SHEET
    # =========================================================================

    def _create_cover_sheet(self, report: KpiReport):
        """Cover page with one line per KPI."""
        ws = self.wb.active
        ws.title = "Summary"

        row = 1
        ws.cell(row=row, column=1, value="Distributor KPI Report")
        ws.cell(row=row, column=1).font = self.title_font
        ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=4)
        row += 2

        ws.cell(row=row, column=1, value="Report Period:")
        ws.cell(row=row, column=2, value=report.window.label if report.window else "-")
        row += 1

        ws.cell(row=row, column=1, value="Generated:")
        ws.cell(row=row, column=2, value=datetime.now().strftime('%Y-%m-%d %H:%M'))
        row += 2

        ws.cell(row=row, column=1, value="Key Performance Indicators")
        ws.cell(row=row, column=1).font = self.subtitle_font
        row += 1

        for summary in report.summary_frame().to_dict(orient='records'):
            ws.cell(row=row, column=1, value=summary['kpi'])
            cell = ws.cell(row=row, column=2, value=summary['total'])
            cell.number_format = self.volume_format
            cell.alignment = self.right_align
            ws.cell(row=row, column=3, value=summary['unit'])
            row += 1

        if report.agreements:
            row += 1
            ws.cell(row=row, column=1, value="Overall Agreement Achievement")
            cell = ws.cell(row=row, column=2, value=round(report.overall_achievement, 1))
            cell.number_format = self.percent_format
            cell.alignment = self.right_align

        ws.column_dimensions['A'].width = 40
        ws.column_dimensions['B'].width = 18
        ws.column_dimensions['C'].width = 12

    # =========================================================================
    # TABLE SHEETS
    # =========================================================================

    @staticmethod
    def _sheet_title(name: str) -> str:
        return name.translate(_BAD_TITLE_CHARS)[:31]

    @staticmethod
    def _kpi_columns(keys, unit: str) -> List[Column]:
        headers = {
            'sales_exec_name': 'Sales Executive',
            'customer': 'Customer',
            'brand_name': 'Brand',
            'product_name': 'Product',
            'week': 'Week Starting',
        }
        columns = [(key, headers.get(key, key.replace('_', ' ').title()), 25) for key in keys]
        columns.append(('metric_value', f"Value ({unit})" if unit else "Value", 16))
        return columns

    def _write_table(self, title: str, df: pd.DataFrame, columns: List[Column]):
        """Header row + data rows with borders and number formats."""
        ws = self.wb.create_sheet(title)

        for col_idx, (_, header, width) in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.fill = self.header_fill
            cell.font = self.header_font
            cell.alignment = self.center_align
            cell.border = self.cell_border
            ws.column_dimensions[get_column_letter(col_idx)].width = width

        for row_idx, record in enumerate(df.to_dict(orient='records'), 2):
            for col_idx, (col_name, _, _) in enumerate(columns, 1):
                cell = ws.cell(row=row_idx, column=col_idx, value=record.get(col_name, ''))
                cell.border = self.cell_border
                if col_name in ('metric_value', 'volume', 'target_volume', 'achieved_volume'):
                    cell.number_format = self.volume_format
                    cell.alignment = self.right_align
                elif col_name == 'percent_achieved':
                    cell.number_format = self.percent_format
                    cell.alignment = self.right_align
                elif col_name in ('start_date', 'end_date'):
                    cell.number_format = self.date_format

        ws.freeze_panes = 'A2'
        return ws

    def _create_agreement_sheet(self, df: pd.DataFrame):
        ws = self._write_table("Agreements", df, [
            ('customer_code', 'Customer Code', 15),
            ('customer_name', 'Customer', 30),
            ('start_date', 'Start Date', 12),
            ('end_date', 'End Date', 12),
            ('target_volume', 'Target (Ltr)', 14),
            ('achieved_volume', 'Achieved (Ltr)', 14),
            ('percent_achieved', 'Achievement %', 14),
        ])

        # Red below target, yellow at target, green above
        ws.conditional_formatting.add(
            f'G2:G{len(df) + 1}',
            ColorScaleRule(
                start_type='num', start_value=50, start_color='F8696B',
                mid_type='num', mid_value=100, mid_color='FFEB84',
                end_type='num', end_value=150, end_color='63BE7B'
            )
        )
