"""
Workbook Source for ERP Field Merge

Extracts spreadsheet fields from already-loaded sheet grids. Reading the
binary workbook format is delegated to an injected ``sheet_loader`` so this
module only deals with rows of cell values.

Workbook layout:
- sheets 1-4: common sheets, identical across workbooks
- sheet 5: API sheet with service info (rows 2-3) and the field table
"""

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from erp_field_merge.models import ServiceInfo, SpreadsheetField, Workbook
from erp_field_merge.sources.base import SourceNotFoundError, SourceReadError, WorkbookProvider

logger = logging.getLogger(__name__)

Row = Sequence[Any]
Sheet = Tuple[str, List[Row]]
SheetLoader = Callable[[Path], List[Sheet]]

WORKBOOK_SUFFIXES = (".xls", ".xlsx")
COMMON_SHEET_COUNT = 4
API_SHEET_INDEX = 4

REQUIRED_TOKENS = frozenset({"y", "yes", "true", "1", "是", "必填"})

_DB_COLUMN_PATTERN = re.compile(r"欄位代號[:：]\s*([A-Z]+\.[A-Z0-9]+)")

HEADER_KEYWORDS = ("欄位名稱", "欄位", "參數名稱", "名稱", "資料型態", "必要")

# Column positions in the API sheet field table
TYPE_MARKER_IDX = 1
API_NAME_IDX = 4
DATA_TYPE_IDX = 5
REQUIRED_IDX = 6
DESCRIPTION_IDX = 11
EXAMPLE_IDX = 14
REMARK_IDX = 15

FIELD_ROW_MARKER = "MF"

SERVICE_INFO_HEADERS = {
    "service_name": "服務名稱",
    "description_zh_tw": "服務說明(繁體)",
    "description_zh_cn": "服務說明(簡體)",
    "description_en": "服務說明(英文)",
    "version": "服務版本",
    "call_mode": "調用模式",
    "page_mode": "分頁模式",
}


def clean_cell(value: Any) -> str:
    """Cell value as trimmed text; integral floats (1.0) render without a fraction."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_required(value: Any) -> bool:
    """
    Interpret a requiredness cell.

    Args:
        value: Raw cell value

    Returns:
        True for y/yes/true/1/是/必填 (case-insensitive), False otherwise
    """
    return clean_cell(value).lower() in REQUIRED_TOKENS


def extract_db_column(remark: Optional[str]) -> str:
    """
    Recover a TABLE.COLUMN identifier embedded in a remark.

    Args:
        remark: Remark text such as "欄位代號:ACPTA.TA001"

    Returns:
        "ACPTA.TA001", or "" if the pattern is absent
    """
    if not remark:
        return ""
    match = _DB_COLUMN_PATTERN.search(remark)
    return match.group(1) if match else ""


def method_type(file_stem: str) -> str:
    """
    Derive the API method type from a workbook file name.

    wf.oapi.payable.doc.data.create -> create
    wf.oapi.payable.doc.data.query.get -> query
    wf.oapi.payable.doc.data.query.get_Parameter -> query_parameter
    """
    parts = file_stem.split(".")
    last_part = parts[-1]
    second_last_part = parts[-2] if len(parts) > 1 else ""

    if last_part == "get" and second_last_part in ("query", "read"):
        return second_last_part

    if last_part == "get_Parameter" and second_last_part == "query":
        return "query_parameter"

    return last_part


class CommonSheetCache:
    """
    Holds the common sheets shared by all workbooks.

    One instance is meant to live for one batch run and be passed to every
    reader of that run.
    """

    def __init__(self):
        self._sheets: Optional[Dict[str, List[Row]]] = None

    @property
    def loaded(self) -> bool:
        return self._sheets is not None

    def get(self) -> Optional[Dict[str, List[Row]]]:
        return self._sheets

    def store_if_empty(self, sheets: Sequence[Sheet]) -> None:
        """Cache the first common sheets unless already cached."""
        if self._sheets is not None:
            return

        self._sheets = {
            name: list(rows) for name, rows in list(sheets)[:COMMON_SHEET_COUNT]
        }
        logger.debug(f"Cached {len(self._sheets)} common sheets")

    def clear(self) -> None:
        self._sheets = None


class WorkbookFieldExtractor:
    """Extracts fields and service info from an API sheet grid."""

    def find_header_row(self, rows: Sequence[Row]) -> int:
        """Index of the field-table header row, or -1 if not found."""
        for i, row in enumerate(rows):
            if not row:
                continue
            for cell in row:
                if isinstance(cell, str) and any(keyword in cell for keyword in HEADER_KEYWORDS):
                    return i
        return -1

    def extract_fields(self, rows: Sequence[Row]) -> List[SpreadsheetField]:
        """
        Extract field rows (type marker MF) below the header row.

        Rows with a blank API name are dropped.

        Args:
            rows: API sheet rows as lists of cell values

        Returns:
            Spreadsheet fields in row order
        """
        fields: List[SpreadsheetField] = []

        header_idx = self.find_header_row(rows)
        if header_idx == -1:
            logger.warning("Cannot locate the field table header row")
            return fields

        for row in rows[header_idx + 1:]:
            if not row:
                continue

            if self._cell(row, TYPE_MARKER_IDX) != FIELD_ROW_MARKER:
                continue

            api_name = self._cell(row, API_NAME_IDX)
            if not api_name:
                continue

            remark = self._cell(row, REMARK_IDX)
            example = self._cell(row, EXAMPLE_IDX) or None

            fields.append(SpreadsheetField(
                api_name=api_name,
                db_column=extract_db_column(remark),
                data_type=self._cell(row, DATA_TYPE_IDX),
                required=parse_required(row[REQUIRED_IDX]) if REQUIRED_IDX < len(row) else False,
                description=self._cell(row, DESCRIPTION_IDX),
                example=example,
                remark=remark or None,
            ))

        return fields

    def extract_service_info(self, rows: Sequence[Row]) -> Optional[ServiceInfo]:
        """
        Read the service header (row 2 labels, row 3 values).

        Args:
            rows: API sheet rows

        Returns:
            ServiceInfo, or None if the sheet is too short
        """
        if len(rows) < 3 or not rows[1] or not rows[2]:
            return None

        header_row = [clean_cell(cell) for cell in rows[1]]
        value_row = rows[2]

        values = {}
        for attribute, label in SERVICE_INFO_HEADERS.items():
            idx = next((i for i, cell in enumerate(header_row) if label in cell), -1)
            if 0 <= idx < len(value_row):
                values[attribute] = clean_cell(value_row[idx])

        if not values.get("version"):
            values["version"] = "1.0"

        return ServiceInfo(**values)

    def group_fields(
        self,
        fields: Sequence[SpreadsheetField]
    ) -> Tuple[List[SpreadsheetField], List[SpreadsheetField]]:
        """Split fields into header (單頭) and detail (單身) groups."""
        header_fields = []
        detail_fields = []

        for spreadsheet_field in fields:
            if (
                "detail" in spreadsheet_field.api_name
                or "body" in spreadsheet_field.api_name
                or "單身" in (spreadsheet_field.remark or "")
            ):
                detail_fields.append(spreadsheet_field)
            else:
                header_fields.append(spreadsheet_field)

        return header_fields, detail_fields

    def _cell(self, row: Row, idx: int) -> str:
        return clean_cell(row[idx]) if idx < len(row) else ""


class GridWorkbookProvider(WorkbookProvider):
    """
    Workbook provider over ``<workbook_root>/<module>/<operation>/*.xls[x]``.

    The binary format is read by ``sheet_loader``, which returns the ordered
    (sheet name, rows) pairs of one file.
    """

    def __init__(
        self,
        workbook_root: Union[str, Path],
        sheet_loader: SheetLoader,
        cache: Optional[CommonSheetCache] = None,
        extractor: Optional[WorkbookFieldExtractor] = None
    ):
        """
        Initialize the provider.

        Args:
            workbook_root: Root directory of the workbook tree
            sheet_loader: Callable loading (sheet name, rows) pairs from a file
            cache: Common-sheet cache scoped to the caller's batch run
            extractor: Field extractor (a new one if omitted)
        """
        self.workbook_root = Path(workbook_root)
        self.sheet_loader = sheet_loader
        self.cache = cache if cache is not None else CommonSheetCache()
        self.extractor = extractor or WorkbookFieldExtractor()
        logger.debug(f"Workbook root: {self.workbook_root}")

    def scan_workbook_files(self) -> List[Path]:
        """
        List every workbook file under the root, sorted by path.

        Raises:
            SourceNotFoundError: If the root directory does not exist
        """
        if not self.workbook_root.is_dir():
            raise SourceNotFoundError(f"Workbook root not found: {self.workbook_root}")

        files = [
            path for path in self.workbook_root.glob("*/*/*")
            if path.is_file() and path.suffix.lower() in WORKBOOK_SUFFIXES
        ]
        return sorted(files)

    def operation_files(self, operation_code: str) -> List[Path]:
        """
        List the workbook files of one operation, sorted by path.

        Only ``<root>/*/<operation_code>/`` is globbed, not the whole tree.

        Raises:
            SourceNotFoundError: If the root directory does not exist
        """
        if not self.workbook_root.is_dir():
            raise SourceNotFoundError(f"Workbook root not found: {self.workbook_root}")

        files = [
            path for path in self.workbook_root.glob(f"*/{operation_code}/*")
            if path.is_file() and path.suffix.lower() in WORKBOOK_SUFFIXES
        ]
        return sorted(files)

    def read_workbook(self, path: Path) -> Optional[Workbook]:
        """
        Read one workbook file.

        Args:
            path: Workbook file path

        Returns:
            Workbook, or None if the file has no API sheet

        Raises:
            SourceReadError: If the loader fails
        """
        try:
            sheets = self.sheet_loader(path)
        except Exception as e:
            logger.error(f"Failed to load workbook {path}: {e}")
            raise SourceReadError(f"Cannot load workbook {path}: {e}") from e

        self.cache.store_if_empty(sheets)

        if len(sheets) <= API_SHEET_INDEX:
            logger.warning(f"Workbook {path.name} has no API sheet, skipping")
            return None

        _, api_rows = sheets[API_SHEET_INDEX]
        fields = self.extractor.extract_fields(api_rows)
        header_fields, detail_fields = self.extractor.group_fields(fields)

        return Workbook(
            operation_code=path.parent.name,
            api_name=path.stem,
            module=path.parent.parent.name,
            method_type=method_type(path.stem),
            fields=tuple(fields),
            header_fields=tuple(header_fields),
            detail_fields=tuple(detail_fields),
            service_info=self.extractor.extract_service_info(api_rows),
        )

    def get_workbook_fields(self, operation_code: str) -> List[Workbook]:
        workbooks = []

        for path in self.operation_files(operation_code):
            workbook = self.read_workbook(path)
            if workbook is not None:
                workbooks.append(workbook)

        logger.info(f"Read {len(workbooks)} workbook(s) for {operation_code}")
        return workbooks
