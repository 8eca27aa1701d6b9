# app/domain/emissions.py
"""
Emission figures (kg CO2e per unit) for a classified product.

Both functions are pure: they only read the classifier output and the
built-in factor tables below.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

# kg CO2e per kg of material, keyed by lower-cased material class
MATERIAL_FACTORS: Dict[str, float] = {
    "metal": 6.5,
    "metals": 6.5,
    "steel": 2.3,
    "aluminium": 11.5,
    "aluminum": 11.5,
    "copper": 3.8,
    "plastic": 3.1,
    "plastics": 3.1,
    "polymer": 3.1,
    "rubber": 3.2,
    "glass": 1.4,
    "wood": 0.5,
    "paper": 1.1,
    "cardboard": 1.0,
    "textile": 5.5,
    "textiles": 5.5,
    "ceramic": 1.3,
    "ceramics": 1.3,
    "electronics": 25.0,
    "electronic components": 25.0,
    "composite": 8.0,
}
DEFAULT_MATERIAL_FACTOR = 3.0

# relative grid/industry intensity of the producing country
COUNTRY_FACTORS: Dict[str, float] = {
    "china": 1.25,
    "india": 1.3,
    "vietnam": 1.15,
    "indonesia": 1.2,
    "malaysia": 1.1,
    "thailand": 1.05,
    "united states": 0.95,
    "usa": 0.95,
    "germany": 0.85,
    "united kingdom": 0.75,
    "france": 0.6,
    "japan": 1.0,
    "south korea": 1.05,
    "singapore": 0.9,
    "australia": 1.15,
}
DEFAULT_COUNTRY_FACTOR = 1.0

# kg CO2e per unit for one manufacturing step
PROCESS_FACTORS: Dict[str, float] = {
    "injection molding": 0.9,
    "extrusion": 0.7,
    "casting": 1.6,
    "forging": 1.4,
    "machining": 0.8,
    "cnc machining": 0.8,
    "stamping": 0.5,
    "welding": 0.6,
    "painting": 0.4,
    "powder coating": 0.35,
    "anodizing": 0.5,
    "assembly": 0.1,
    "pcb assembly": 0.9,
    "soldering": 0.2,
    "sewing": 0.15,
    "weaving": 0.6,
    "dyeing": 0.9,
    "cutting": 0.2,
    "printing": 0.25,
    "packaging": 0.1,
    "heat treatment": 1.1,
}
DEFAULT_PROCESS_FACTOR = 0.3


def _norm(s: Any) -> str:
    return str(s or "").strip().lower()


def _weight(m: Dict[str, Any]) -> float:
    try:
        return float(m.get("weight") or 0.0)
    except (TypeError, ValueError):
        return 0.0


def calculate_raw_material_emissions(bom: Iterable[Dict[str, Any]], country_of_origin: Optional[str]) -> float:
    total = 0.0
    for m in bom or []:
        factor = MATERIAL_FACTORS.get(_norm(m.get("materialClass")), DEFAULT_MATERIAL_FACTOR)
        total += _weight(m) * factor
    total *= COUNTRY_FACTORS.get(_norm(country_of_origin), DEFAULT_COUNTRY_FACTOR)
    return round(total, 4)


def calculate_process_emissions(processes: Iterable[Dict[str, Any]]) -> float:
    total = 0.0
    for group in processes or []:
        steps: List[str] = group.get("processes") or []
        for p in steps:
            total += PROCESS_FACTORS.get(_norm(p), DEFAULT_PROCESS_FACTOR)
    return round(total, 4)
