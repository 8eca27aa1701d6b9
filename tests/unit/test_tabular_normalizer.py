import io

import pandas as pd
import pytest
from openpyxl import Workbook

from app.application.tabular_normalizer import normalize, parse_table, validate_mapping
from app.domain.errors import (
    EmptyUploadError, MappingError, RowValidationError,
    TabularParseError, UnsupportedFileTypeError,
)
from app.domain.models import FieldMapping

MAPPING = FieldMapping(code="SKU", name="Title", description="Desc")


def _xlsx(sheets: dict) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for r in rows:
            ws.append(r)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_csv_two_valid_rows_become_pending_records():
    raw = b" SKU ,Title,Desc\nA1,Chair,Oak chair\n\nB2,Table,Pine table\n"
    docs = normalize(raw, "csv", MAPPING)
    assert [d["code"] for d in docs] == ["A1", "B2"]
    assert all(d["aiProcessingStatus"] == "pending" for d in docs)
    assert all(d["images"] == [] for d in docs)
    assert docs[0]["createdDate"] == docs[0]["modifiedDate"]


def test_csv_keeps_codes_as_text():
    raw = b"SKU,Title,Desc,Kg\n00123,Lamp,Desk lamp,1.25\n"
    docs = normalize(raw, "csv", FieldMapping(code="SKU", name="Title", description="Desc", weight="Kg"))
    assert docs[0]["code"] == "00123"
    assert docs[0]["weight"] == pytest.approx(1.25)


def test_optional_fields_are_mapped_when_present():
    raw = b"SKU,Title,Desc,Origin,Vendor\nA1,Chair,Oak chair,Vietnam,Acme\nA2,Stool,Oak stool,,\n"
    mapping = FieldMapping(code="SKU", name="Title", description="Desc",
                           country_of_origin="Origin", supplier_name="Vendor")
    docs = normalize(raw, "csv", mapping)
    assert docs[0]["countryOfOrigin"] == "Vietnam"
    assert docs[0]["supplierName"] == "Acme"
    assert "countryOfOrigin" not in docs[1]


def test_required_mappings_missing():
    with pytest.raises(MappingError) as ei:
        normalize(b"SKU,Title\nA1,Chair\n", "csv", FieldMapping(code="SKU"))
    assert ei.value.details["missingMappings"] == ["nameField", "descriptionField"]


def test_mapped_columns_absent_from_header_are_listed():
    mapping = FieldMapping(code="SKU", name="Title", description="DescColumn", weight="Kg")
    with pytest.raises(MappingError) as ei:
        validate_mapping(mapping, ["SKU", "Title", "Desc"])
    assert ei.value.message == "Mapped fields not found in uploaded file"
    assert ei.value.details["missingFields"] == ["DescColumn", "Kg"]
    assert ei.value.details["availableFields"] == ["SKU", "Title", "Desc"]


def test_row_errors_are_aggregated_across_rows():
    raw = b"SKU,Title,Desc,Kg\nA1,,Oak chair,1\n,Table,,heavy\nC3,Bed,Pine bed,2\n"
    mapping = FieldMapping(code="SKU", name="Title", description="Desc", weight="Kg")
    with pytest.raises(RowValidationError) as ei:
        normalize(raw, "csv", mapping)
    errors = ei.value.details["validationErrors"]
    assert errors == {
        "Row 2, name": "is required (mapped from column 'Title')",
        "Row 3, weight": "must be a number (mapped from column 'Kg')",
        "Row 3, code": "is required (mapped from column 'SKU')",
        "Row 3, description": "is required (mapped from column 'Desc')",
    }


def test_delimiter_only_rows_still_count_toward_row_numbers():
    raw = b"SKU,Title,Desc\n,,\nA1,,Oak chair\n"
    with pytest.raises(RowValidationError) as ei:
        normalize(raw, "csv", MAPPING)
    assert ei.value.details["validationErrors"] == {
        "Row 3, name": "is required (mapped from column 'Title')",
    }


def test_delimiter_only_rows_are_not_products():
    table = parse_table(b"SKU,Title,Desc\nA1,Chair,x\n,,\nB2,Table,y\n", "csv")
    assert [line for line, _ in table.rows] == [2, 4]


def test_whitespace_only_values_are_rejected():
    with pytest.raises(RowValidationError) as ei:
        normalize(b"SKU,Title,Desc\nA1,   ,x\n", "csv", MAPPING)
    assert "Row 2, name" in ei.value.details["validationErrors"]


def test_header_only_file_is_empty():
    with pytest.raises(EmptyUploadError):
        normalize(b"SKU,Title,Desc\n", "csv", MAPPING)


def test_malformed_csv():
    with pytest.raises(TabularParseError):
        normalize(b'SKU,Title,Desc\nA1,"Chair,x\nB2,y,z,w,v\n', "csv", MAPPING)


def test_unsupported_extension():
    with pytest.raises(UnsupportedFileTypeError):
        parse_table(b"whatever", "pdf")


def test_legacy_xls_is_accepted_and_read_with_xlrd(monkeypatch):
    seen = {}

    def fake_excel_file(buf, engine=None):
        seen["engine"] = engine
        raise ValueError("not a BIFF workbook")

    monkeypatch.setattr(pd, "ExcelFile", fake_excel_file)
    with pytest.raises(TabularParseError) as ei:
        parse_table(b"\xd0\xcf\x11\xe0", "xls")
    assert seen["engine"] == "xlrd"
    assert ei.value.message == "Spreadsheet parsing error"


def test_spreadsheet_first_sheet_by_default():
    raw = _xlsx({
        "Products": [["SKU", "Title", "Desc", "Kg"], [12345, "Chair", "Oak chair", 3.5], [None, None, None, None]],
        "Other": [["x"], [1]],
    })
    mapping = FieldMapping(code="SKU", name="Title", description="Desc", weight="Kg")
    docs = normalize(raw, "xlsx", mapping)
    assert len(docs) == 1
    assert docs[0]["code"] == "12345"
    assert docs[0]["weight"] == pytest.approx(3.5)


def test_spreadsheet_selected_sheet():
    raw = _xlsx({
        "First": [["a"], [1]],
        "Catalog": [["SKU", "Title", "Desc"], ["Z9", "Sofa", "Three seater"]],
    })
    docs = normalize(raw, "xlsx", MAPPING, sheet="Catalog")
    assert docs[0]["name"] == "Sofa"


def test_unknown_sheet_fails_fast():
    raw = _xlsx({"Catalog": [["SKU", "Title", "Desc"], ["Z9", "Sofa", "x"]]})
    with pytest.raises(TabularParseError) as ei:
        normalize(raw, "xlsx", MAPPING, sheet="Nope")
    assert ei.value.details["availableSheets"] == ["Catalog"]


def test_spreadsheet_missing_mapped_description_column():
    raw = _xlsx({"Sheet1": [["SKU", "Title"], ["A1", "Chair"]]})
    mapping = FieldMapping(code="SKU", name="Title", description="DescColumn")
    with pytest.raises(MappingError) as ei:
        normalize(raw, "xlsx", mapping)
    assert ei.value.status_code == 400
    assert ei.value.details["missingFields"] == ["DescColumn"]
