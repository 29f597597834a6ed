"""
Stock template service: generate the blank upload spreadsheet.

Sheet 1 carries the header row the parser expects plus example rows.
Sheet 2 ("Validaciones") lists active warehouses, allowed units and
filling instructions.
"""

from datetime import date
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
import structlog

logger = structlog.get_logger(__name__)

TEMPLATE_SHEET = "Stock Upload"
VALIDATION_SHEET = "Validaciones"

# (header, width)
TEMPLATE_COLUMNS = [
    ("ALMACÉN", 25),
    ("CÓDIGO", 20),
    ("DESCRIPCIÓN", 40),
    ("CANTIDAD", 15),
    ("U. MEDIDA", 15),
    ("STOCK MÍNIMO", 15),
]

EXAMPLE_ROWS = [
    ("Almacén central", "INC-256EGG", "INCUBADORA DE 256 EGG", 9, "UNIDAD", 1),
    ("Almacén central", "ALM-KG01", "ALIMENTO BALANCEADO PARA AVES", 25, "KILOGRAMO", 5),
    ("Almacén central", "TOR-C01", "TORNILLOS AUTORROSCANTES 3/4", 12, "CIENTO", 2),
    ("Almacén central", "HER-D01", "DESTORNILLADORES PHILLIPS #2", 8, "DOCENA", 1),
]

UNIT_DESCRIPTIONS = {
    "MILLAR": "1000 unidades",
    "UNIDAD": "1 pieza individual",
    "CIENTO": "100 unidades",
    "DOCENA": "12 unidades",
    "KILOGRAMO": "peso en kilogramos",
    "HORA": "servicios por horas",
}


class StockTemplateService:
    """Service for generating the stock upload template."""

    def generate_template(
        self,
        warehouses: list[str],
        units: list[str],
        today: Optional[date] = None,
    ) -> tuple[BytesIO, str]:
        """
        Build the template workbook.

        Args:
            warehouses: Active warehouse names for the validation sheet
            units: Allowed units of measure
            today: Date used in the filename (defaults to today)

        Returns:
            (BytesIO with the xlsx file, suggested filename)
        """
        today = today or date.today()

        wb = Workbook()
        ws = wb.active
        ws.title = TEMPLATE_SHEET

        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(fill_type="solid", fgColor="4472C4")
        bold_font = Font(bold=True)

        for column, (header, width) in enumerate(TEMPLATE_COLUMNS, start=1):
            cell = ws.cell(row=1, column=column, value=header)
            cell.font = header_font
            cell.fill = header_fill
            ws.column_dimensions[cell.column_letter].width = width

        for example in EXAMPLE_ROWS:
            ws.append(list(example))

        vs = wb.create_sheet(VALIDATION_SHEET)
        vs.column_dimensions["A"].width = 60

        vs.append(["Almacenes válidos:"])
        vs["A1"].font = bold_font
        for name in warehouses:
            vs.append([name])

        vs.append([""])
        vs.append(["INSTRUCCIONES:"])
        vs.cell(row=vs.max_row, column=1).font = bold_font
        vs.append(["• ALMACÉN: Nombre o código de un almacén de la lista"])
        vs.append(["• CÓDIGO: Código del producto en el catálogo (obligatorio)"])
        vs.append(["• DESCRIPCIÓN: Nombre del producto"])
        vs.append(["• CANTIDAD: Stock actual, mayor que cero (obligatorio)"])
        vs.append(["  Decimales con coma o punto: 2,5 | 2.5 | 1.234,5 | 1,234.5"])
        vs.append([f"• U. MEDIDA: {', '.join(units)}"])
        vs.append(["• STOCK MÍNIMO: Opcional, se puede configurar después"])

        vs.append([""])
        vs.append(["UNIDADES DE MEDIDA PERMITIDAS:"])
        vs.cell(row=vs.max_row, column=1).font = bold_font
        for unit in units:
            description = UNIT_DESCRIPTIONS.get(unit.upper())
            vs.append([f"• {unit} = {description}" if description else f"• {unit}"])

        filename = f"Plantilla_Stock_{today.isoformat()}.xlsx"

        logger.info("stock_template_generated", warehouses=len(warehouses), units=len(units))

        output = BytesIO()
        wb.save(output)
        output.seek(0)

        return output, filename


# Singleton instance
_stock_template_service: Optional[StockTemplateService] = None


def get_stock_template_service() -> StockTemplateService:
    """Get or create StockTemplateService instance."""
    global _stock_template_service
    if _stock_template_service is None:
        _stock_template_service = StockTemplateService()
    return _stock_template_service
