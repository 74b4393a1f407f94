from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal


ProductType = Literal["sales", "leads"]


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    type: ProductType
    all_time_start: str
    all_time_end: str | None = None
    mql_primary: bool = False
    native_form: bool = False
    show_mql_in_sales: bool = False
    # Fixed range the product opens with instead of allTime (end None = today).
    default_start: str | None = None
    default_end: str | None = None
    creative_name_overrides: dict[str, str] = field(default_factory=dict)
    creative_link_overrides: dict[str, str] = field(default_factory=dict)

    @property
    def is_sales(self) -> bool:
        return self.type == "sales"

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["is_sales"] = self.is_sales
        return d


DEFAULT_PRODUCT_ID = "webinarflix"

_ADS005_LINK = "https://www.instagram.com/p/DUB6KFLAInA/#advertiser"

_BUILTIN: tuple[Product, ...] = (
    Product(
        id="webinarflix",
        name="WebinarFlix",
        type="sales",
        all_time_start="2026-01-20",
        creative_name_overrides={"120240232224840245": "ADS005_VENDA_IMAGEM_FEEDeSTORIES"},
        creative_link_overrides={
            "120240232224840245": _ADS005_LINK,
            "ADS005_VENDA_IMAGEM_FEEDeSTORIES": _ADS005_LINK,
        },
    ),
    Product(
        id="upgrade-persona",
        name="Upgrade de Persona",
        type="leads",
        all_time_start="2026-01-23",
        all_time_end="2026-02-04",
        mql_primary=True,
    ),
    Product(
        id="fib-live",
        name="FIB Live",
        type="sales",
        all_time_start="2026-01-01",
        show_mql_in_sales=True,
    ),
    Product(
        id="formulario-aplicacao",
        name="Formulário de Aplicação",
        type="leads",
        all_time_start="2026-01-20",
        mql_primary=True,
        native_form=True,
        default_start="2026-01-01",
    ),
)

_catalog: dict[str, Product] = {p.id: p for p in _BUILTIN}


def _product_from_dict(raw: dict[str, Any]) -> Product:
    ptype = str(raw.get("type") or "leads").strip().lower()
    if ptype not in ("sales", "leads"):
        raise ValueError(f"product {raw.get('id')!r}: type must be 'sales' or 'leads'")
    if not raw.get("id") or not raw.get("all_time_start"):
        raise ValueError("product entries need at least 'id' and 'all_time_start'")
    return Product(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["id"]),
        type=ptype,  # type: ignore[arg-type]
        all_time_start=str(raw["all_time_start"]),
        all_time_end=raw.get("all_time_end") or None,
        mql_primary=bool(raw.get("mql_primary", False)),
        native_form=bool(raw.get("native_form", False)),
        show_mql_in_sales=bool(raw.get("show_mql_in_sales", False)),
        default_start=raw.get("default_start") or None,
        default_end=raw.get("default_end") or None,
        creative_name_overrides=dict(raw.get("creative_name_overrides") or {}),
        creative_link_overrides=dict(raw.get("creative_link_overrides") or {}),
    )


def load_products(path: str) -> list[Product]:
    """Replace the catalog with the products listed in a JSON file (a list of objects)."""
    global _catalog
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list) or not data:
        raise ValueError(f"{path}: expected a non-empty JSON list of products")
    products = [_product_from_dict(r) for r in data]
    _catalog = {p.id: p for p in products}
    return products


def reset_products() -> None:
    global _catalog
    _catalog = {p.id: p for p in _BUILTIN}


def list_products() -> list[Product]:
    return list(_catalog.values())


def get_product(product_id: str) -> Product:
    try:
        return _catalog[product_id]
    except KeyError:
        raise KeyError(f"unknown product: {product_id!r}") from None


def default_product() -> Product:
    if DEFAULT_PRODUCT_ID in _catalog:
        return _catalog[DEFAULT_PRODUCT_ID]
    return next(iter(_catalog.values()))
