# app/domain/models.py
from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AiProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Material(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    material_class: str = Field(alias="materialClass")
    specific_material: str = Field(alias="specificMaterial")
    weight: float = 0.0


class ManufacturingProcess(BaseModel):
    category: str
    processes: List[str] = []


class Product(BaseModel):
    """
    Product record as stored in the per-account `products` collection.
    Attribute names are snake_case; the stored document keeps the camelCase
    aliases (`countryOfOrigin`, `aiProcessingStatus`, ...).
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    code: str
    name: str
    description: str
    weight: Optional[float] = None
    country_of_origin: Optional[str] = Field(None, alias="countryOfOrigin")
    supplier_name: Optional[str] = Field(None, alias="supplierName")
    category: Optional[str] = None
    sub_category: Optional[str] = Field(None, alias="subCategory")
    images: List[str] = []
    materials: List[Material] = []
    product_manufacturing_process: List[ManufacturingProcess] = Field(
        default_factory=list, alias="productManufacturingProcess"
    )
    co2_emission: Optional[float] = Field(None, alias="co2Emission")
    co2_emission_raw_materials: Optional[float] = Field(None, alias="co2EmissionRawMaterials")
    co2_emission_from_processes: Optional[float] = Field(None, alias="co2EmissionFromProcesses")
    ai_processing_status: AiProcessingStatus = Field(AiProcessingStatus.PENDING, alias="aiProcessingStatus")
    created_date: Optional[dt.datetime] = Field(None, alias="createdDate")
    modified_date: Optional[dt.datetime] = Field(None, alias="modifiedDate")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="python")


# Target fields that a bulk upload may bind to source columns.
REQUIRED_FIELDS = ("code", "name", "description")


class FieldMapping(BaseModel):
    """Source column name for each recognized product field (None = unmapped)."""
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    weight: Optional[str] = None
    country_of_origin: Optional[str] = Field(None, alias="countryOfOrigin")
    supplier_name: Optional[str] = Field(None, alias="supplierName")
    category: Optional[str] = None
    sub_category: Optional[str] = Field(None, alias="subCategory")

    def bound(self) -> dict[str, str]:
        """{documentField: sourceColumn} for every mapped field, in declaration order."""
        out: dict[str, str] = {}
        for attr, info in type(self).model_fields.items():
            col = getattr(self, attr)
            if col is not None and str(col).strip():
                out[info.alias or attr] = str(col).strip()
        return out

    def missing_required(self) -> List[str]:
        bound = self.bound()
        return [f for f in REQUIRED_FIELDS if f not in bound]

    def as_form_fields(self) -> dict[str, Optional[str]]:
        return {f"{k}Field": v for k, v in self.model_dump(by_alias=True).items()}
