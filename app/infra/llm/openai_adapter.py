# app/infra/llm/openai_adapter.py
from __future__ import annotations
import os, json
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from app.domain.errors import ClassificationError
from app.domain.ports import ClassifierPort

PRODUCT_PROMPT = (
    "You classify products for a lifecycle-assessment catalog. "
    "Given a product code, name and description, answer with a JSON object "
    '{"category": string, "subcategory": string}. '
    "Use short, general industry categories. Do not add other keys."
)

BOM_PROMPT = (
    "You estimate the bill of materials of a product. "
    "Given code, name, description and total weight in kg, answer with a JSON object "
    '{"materials": [{"materialClass": string, "specificMaterial": string, "weight": number}]}. '
    "Weights are in kg and should sum to the total weight when it is given."
)

PROCESS_PROMPT = (
    "You list the manufacturing processes of a product. "
    "Given code, name, description and its bill of materials, answer with a JSON object "
    '{"processes": [{"category": string, "processes": [string]}]} '
    "grouping process steps by category (e.g. Forming, Joining, Finishing, Assembly)."
)


class OpenAIClassifier(ClassifierPort):
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        self.model = model or os.getenv("LLM_MODEL", "gpt-4o-mini")
        self.temperature = float(os.getenv("LLM_TEMPERATURE", "0.1"))
        self.base_url = os.getenv("OPENAI_BASE_URL") or None
        self._client: AsyncOpenAI | None = None

    def configured(self) -> bool:
        return bool(self.api_key)

    def _ensure_client(self) -> AsyncOpenAI:
        if not self.configured():
            raise ClassificationError("OPENAI_API_KEY is not configured")
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def _ask_json(self, system: str, user: Dict[str, Any]) -> Dict[str, Any]:
        client = self._ensure_client()
        rsp = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": json.dumps(user, ensure_ascii=False, default=str)},
            ],
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        content = (rsp.choices[0].message.content or "").strip()
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ClassificationError(f"model returned non-JSON content: {content[:200]!r}") from e
        if not isinstance(data, dict):
            raise ClassificationError("model returned a non-object JSON payload")
        return data

    # ==== product category ====
    async def classify_product(self, code: str, name: str, description: str) -> Dict[str, Any]:
        data = await self._ask_json(PRODUCT_PROMPT, {
            "productCode": code, "name": name, "description": description,
        })
        return {"category": data.get("category"), "subcategory": data.get("subcategory")}

    # ==== bill of materials ====
    async def classify_bom(self, code: str, name: str, description: str, weight: Optional[float]) -> List[Dict[str, Any]]:
        data = await self._ask_json(BOM_PROMPT, {
            "productCode": code, "name": name, "description": description, "weight": weight,
        })
        materials = data.get("materials")
        if not isinstance(materials, list):
            raise ClassificationError("BOM response has no 'materials' list")
        return [
            {
                "materialClass": str(m.get("materialClass") or ""),
                "specificMaterial": str(m.get("specificMaterial") or ""),
                "weight": float(m.get("weight") or 0.0),
            }
            for m in materials if isinstance(m, dict)
        ]

    # ==== manufacturing process ====
    async def classify_manufacturing_process(
        self, code: str, name: str, description: str, bom: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        data = await self._ask_json(PROCESS_PROMPT, {
            "productCode": code, "name": name, "description": description, "bom": bom,
        })
        processes = data.get("processes")
        if not isinstance(processes, list):
            raise ClassificationError("process response has no 'processes' list")
        return [
            {"category": str(p.get("category") or ""), "processes": [str(s) for s in (p.get("processes") or [])]}
            for p in processes if isinstance(p, dict)
        ]
