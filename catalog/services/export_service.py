import io
import json
import xml.etree.ElementTree as ET
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from sqlalchemy.orm import Session

from catalog.context import RequestContext
from catalog.exceptions import ValidationError
from catalog.models.product import Product
from catalog.services.log_service import LogLevel, LogService
from catalog.services.product_repository import ProductRepository

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

MEDIA_TYPES = {
    "json": "application/json",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xml": "application/xml",
}

# (header, column width)
XLSX_COLUMNS = [
    ("ID", 10),
    ("Name", 25),
    ("Description", 60),
    ("Price", 12),
    ("Currency", 10),
    ("Added Time", 20),
    ("Last Edit", 20),
    ("Active", 10),
    ("Categories", 60),
    ("Attributes", 60),
]


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime(TIME_FORMAT) if value is not None else "N/A"


class ExportService:
    """
    Dumps of the whole product catalog.

    Every product is exported with its categories, attribute values
    (``"<name>: <value>"``), icon and image file names. Supported formats
    are the keys of ``MEDIA_TYPES``.
    """

    LOG_NAME = "export-manager"

    def __init__(self, db: Session, context: Optional[RequestContext] = None):
        self.db = db
        self.repository = ProductRepository(db)
        self.log_service = LogService(db, context)

    @staticmethod
    def file_name(export_format: str, day: Optional[date] = None) -> str:
        return f"products-{(day or date.today()).isoformat()}.{export_format}"

    def export(self, export_format: str) -> bytes:
        """
        Export all products in the given format.

        Raises:
            ValidationError: If the format is not supported
        """
        exporters = {
            "json": self.export_to_json,
            "xlsx": self.export_to_xlsx,
            "xml": self.export_to_xml,
        }
        exporter = exporters.get(export_format.lower())
        if exporter is None:
            raise ValidationError(f"Unsupported export format: {export_format}")

        content = exporter()
        self.log_service.save_log(
            self.LOG_NAME, f"Products exported to {export_format.lower()}", LogLevel.INFO
        )
        return content

    def export_records(self) -> List[Dict[str, Any]]:
        return [self._record(product) for product in self.repository.find_all()]

    def export_to_json(self) -> bytes:
        return json.dumps(self.export_records(), indent=4, ensure_ascii=False).encode("utf-8")

    def export_to_xlsx(self) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Products"

        header_font = Font(bold=True, color="FFFFFF", size=12)
        header_fill = PatternFill(fill_type="solid", start_color="333333", end_color="333333")
        thin = Side(style="thin", color="555555")
        border = Border(left=thin, right=thin, top=thin, bottom=thin)

        for index, (label, width) in enumerate(XLSX_COLUMNS, start=1):
            cell = sheet.cell(row=1, column=index, value=label)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center", vertical="center")
            sheet.column_dimensions[cell.column_letter].width = width

        for record in self.export_records():
            sheet.append([
                record["id"],
                record["name"],
                record["description"],
                Decimal(record["price"]),
                record["price_currency"],
                record["added_time"],
                record["last_edit_time"],
                "Yes" if record["active"] else "No",
                ", ".join(record["categories"]),
                ", ".join(record["attributes"]),
            ])
            for cell in sheet[sheet.max_row]:
                cell.border = border
                # Categories and attributes stay left aligned
                if cell.column <= 8:
                    cell.alignment = Alignment(horizontal="center")

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def export_to_xml(self) -> bytes:
        root = ET.Element("products")

        for record in self.export_records():
            product = ET.SubElement(root, "product")
            for key in ("id", "name", "description", "price", "price_currency", "added_time", "last_edit_time"):
                ET.SubElement(product, key).text = str(record[key])
            ET.SubElement(product, "active").text = "true" if record["active"] else "false"

            categories = ET.SubElement(product, "categories")
            for name in record["categories"]:
                ET.SubElement(categories, "category").text = name

            attributes = ET.SubElement(product, "attributes")
            for attribute in record["attributes"]:
                ET.SubElement(attributes, "attribute").text = attribute

            ET.SubElement(product, "icon").text = record["icon"] or ""
            images = ET.SubElement(product, "images")
            for image in record["images"]:
                ET.SubElement(images, "image").text = image

        ET.indent(root)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    @staticmethod
    def _record(product: Product) -> Dict[str, Any]:
        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "price": f"{product.price_decimal:.2f}",
            "price_currency": product.price_currency,
            "added_time": _format_time(product.added_time),
            "last_edit_time": _format_time(product.last_edit_time),
            "active": product.is_active,
            "categories": product.category_names,
            "attributes": [
                f"{pa.attribute.name}: {pa.value}"
                for pa in product.product_attributes
                if pa.attribute is not None
            ],
            "icon": product.icon.icon_file if product.icon is not None else None,
            "images": product.image_files,
        }
