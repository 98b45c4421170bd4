"""
Record types returned by the catalog and pricing endpoints.

Each record maps to the API's camelCase JSON through from_dict/to_dict.
Unknown fields are ignored and missing ones fall back to defaults; payloads
are not validated.
"""
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Category:
    category_id: int
    name: str = ""
    modified_on: str = ""
    display_name: str = ""
    seo_category_name: str = ""
    sealed_label: str = ""
    non_sealed_label: str = ""
    condition_guide_url: str = ""
    is_scannable: bool = False
    popularity: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Category":
        return cls(
            category_id=data.get("categoryId", 0),
            name=data.get("name", ""),
            modified_on=data.get("modifiedOn", ""),
            display_name=data.get("displayName", ""),
            seo_category_name=data.get("seoCategoryName", ""),
            sealed_label=data.get("sealedLabel", ""),
            non_sealed_label=data.get("nonSealedLabel", ""),
            condition_guide_url=data.get("conditionGuideUrl", ""),
            is_scannable=data.get("isScannable", False),
            popularity=data.get("popularity", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "categoryId": self.category_id,
            "name": self.name,
            "modifiedOn": self.modified_on,
            "displayName": self.display_name,
            "seoCategoryName": self.seo_category_name,
            "sealedLabel": self.sealed_label,
            "nonSealedLabel": self.non_sealed_label,
            "conditionGuideUrl": self.condition_guide_url,
            "isScannable": self.is_scannable,
            "popularity": self.popularity,
        }


@dataclass
class Group:
    group_id: int
    name: str = ""
    abbreviation: str = ""
    supplemental: bool = False
    published_on: str = ""
    modified_on: str = ""
    category_id: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Group":
        return cls(
            group_id=data.get("groupId", 0),
            name=data.get("name", ""),
            abbreviation=data.get("abbreviation", ""),
            supplemental=data.get("supplemental", False),
            published_on=data.get("publishedOn", ""),
            modified_on=data.get("modifiedOn", ""),
            category_id=data.get("categoryId", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupId": self.group_id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "supplemental": self.supplemental,
            "publishedOn": self.published_on,
            "modifiedOn": self.modified_on,
            "categoryId": self.category_id,
        }


@dataclass
class Printing:
    printing_id: int
    name: str = ""
    display_order: int = 0
    modified_on: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Printing":
        return cls(
            printing_id=data.get("printingId", 0),
            name=data.get("name", ""),
            display_order=data.get("displayOrder", 0),
            modified_on=data.get("modifiedOn", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "printingId": self.printing_id,
            "name": self.name,
            "displayOrder": self.display_order,
            "modifiedOn": self.modified_on,
        }


@dataclass
class Sku:
    sku_id: int
    product_id: int = 0
    language_id: int = 0
    printing_id: int = 0
    condition_id: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Sku":
        return cls(
            sku_id=data.get("skuId", 0),
            product_id=data.get("productId", 0),
            language_id=data.get("languageId", 0),
            printing_id=data.get("printingId", 0),
            condition_id=data.get("conditionId", 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "skuId": self.sku_id,
            "productId": self.product_id,
            "languageId": self.language_id,
            "printingId": self.printing_id,
            "conditionId": self.condition_id,
        }


@dataclass
class ExtendedData:
    name: str = ""
    display_name: str = ""
    value: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtendedData":
        return cls(
            name=data.get("name", ""),
            display_name=data.get("displayName", ""),
            value=data.get("value", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "displayName": self.display_name, "value": self.value}


@dataclass
class Product:
    """
    Catalog product.

    skus and extended_data are only populated by catalog calls that ask for
    them, and are left out of to_dict() when empty.
    """

    product_id: int
    name: str = ""
    clean_name: str = ""
    image_url: str = ""
    group_id: int = 0
    url: str = ""
    modified_on: str = ""
    skus: list[Sku] = field(default_factory=list)
    extended_data: list[ExtendedData] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        return cls(
            product_id=data.get("productId", 0),
            name=data.get("name", ""),
            clean_name=data.get("cleanName", ""),
            image_url=data.get("imageUrl", ""),
            group_id=data.get("groupId", 0),
            url=data.get("url", ""),
            modified_on=data.get("modifiedOn", ""),
            skus=[Sku.from_dict(s) for s in data.get("skus") or []],
            extended_data=[ExtendedData.from_dict(e) for e in data.get("extendedData") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "productId": self.product_id,
            "name": self.name,
            "cleanName": self.clean_name,
            "imageUrl": self.image_url,
            "groupId": self.group_id,
            "url": self.url,
            "modifiedOn": self.modified_on,
        }
        if self.skus:
            out["skus"] = [s.to_dict() for s in self.skus]
        if self.extended_data:
            out["extendedData"] = [e.to_dict() for e in self.extended_data]
        return out


@dataclass
class ProductPriceSet:
    product_id: int
    low_price: float | None = None
    market_price: float | None = None
    mid_price: float | None = None
    direct_low_price: float | None = None
    sub_type_name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductPriceSet":
        return cls(
            product_id=data.get("productId", 0),
            low_price=data.get("lowPrice"),
            market_price=data.get("marketPrice"),
            mid_price=data.get("midPrice"),
            direct_low_price=data.get("directLowPrice"),
            sub_type_name=data.get("subTypeName", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "lowPrice": self.low_price,
            "marketPrice": self.market_price,
            "midPrice": self.mid_price,
            "directLowPrice": self.direct_low_price,
            "subTypeName": self.sub_type_name,
        }


@dataclass
class SkuPriceSet:
    sku_id: int
    low_price: float | None = None
    lowest_shipping: float | None = None
    lowest_listing_price: float | None = None
    market_price: float | None = None
    direct_low_price: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SkuPriceSet":
        return cls(
            sku_id=data.get("skuId", 0),
            low_price=data.get("lowPrice"),
            lowest_shipping=data.get("lowestShipping"),
            lowest_listing_price=data.get("lowestListingPrice"),
            market_price=data.get("marketPrice"),
            direct_low_price=data.get("directLowPrice"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "skuId": self.sku_id,
            "lowPrice": self.low_price,
            "lowestShipping": self.lowest_shipping,
            "lowestListingPrice": self.lowest_listing_price,
            "marketPrice": self.market_price,
            "directLowPrice": self.direct_low_price,
        }
