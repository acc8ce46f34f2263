from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..exceptions import TransportRequestError, ValidationError
from ..jid import format_phone_to_jid
from ..results import CollectionsResult, ProductCatalog, ProductOperationResult
from ..transport.base import BaseTransport
from .base import CommandBase


def product_payload(
    *,
    name: str | None = None,
    price: float | None = None,
    currency: str | None = None,
    description: str | None = None,
    image_urls: Sequence[str] | None = None,
    retailer_id: str | None = None,
    url: str | None = None,
    is_hidden: bool | None = None,
) -> dict[str, Any]:
    """Product fields in the transport's shape; unset fields are left out."""

    out: dict[str, Any] = {}
    if name is not None:
        out["name"] = name
    if price is not None:
        # Prices travel as integer thousandths of the currency unit.
        out["priceAmount1000"] = int(round(price * 1000))
    if currency is not None:
        out["currency"] = currency
    if description is not None:
        out["description"] = description
    if image_urls is not None:
        out["images"] = [{"url": u} for u in image_urls]
    if retailer_id is not None:
        out["retailerId"] = retailer_id
    if url is not None:
        out["url"] = url
    if is_hidden is not None:
        out["isHidden"] = is_hidden
    return out


class CatalogCommands(CommandBase):
    """Product catalog (WhatsApp Business accounts only)."""

    def _catalog_owner(self, t: BaseTransport, jid: str | None, operation: str) -> str:
        if jid:
            return format_phone_to_jid(jid)
        me = t.me()
        if me is None:
            raise TransportRequestError(operation, "account identity not known yet")
        return me.jid

    async def get_catalog(
        self, jid: str | None = None, *, limit: int = 10, cursor: str | None = None
    ) -> ProductCatalog:
        async def call(t: BaseTransport) -> dict[str, Any]:
            owner = self._catalog_owner(t, jid, "get_catalog")
            products, next_cursor = await t.get_catalog(owner, limit=limit, cursor=cursor)
            return {"products": products, "next_cursor": next_cursor}

        return await self._command("get_catalog", ProductCatalog, call)

    async def get_collections(
        self, jid: str | None = None, *, limit: int = 51
    ) -> CollectionsResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            owner = self._catalog_owner(t, jid, "get_collections")
            return {"collections": await t.get_collections(owner, limit=limit)}

        return await self._command("get_collections", CollectionsResult, call)

    async def create_product(
        self,
        name: str,
        price: float,
        currency: str,
        *,
        description: str | None = None,
        image_urls: Sequence[str] = (),
        retailer_id: str | None = None,
        url: str | None = None,
        is_hidden: bool = False,
    ) -> ProductOperationResult:
        def check() -> None:
            if not name or not name.strip():
                raise ValidationError("Product name cannot be empty")
            if price < 0:
                raise ValidationError("Product price cannot be negative")
            if not currency:
                raise ValidationError("Product currency is required")

        payload = product_payload(
            name=name,
            price=price,
            currency=currency,
            description=description,
            image_urls=list(image_urls),
            retailer_id=retailer_id,
            url=url,
            is_hidden=is_hidden,
        )

        async def call(t: BaseTransport) -> dict[str, Any]:
            product = await t.product_create(payload)
            return {"product_id": product.id}

        return await self._command("create_product", ProductOperationResult, call, check=check)

    async def update_product(
        self,
        product_id: str,
        *,
        name: str | None = None,
        price: float | None = None,
        currency: str | None = None,
        description: str | None = None,
        image_urls: Sequence[str] | None = None,
        retailer_id: str | None = None,
        url: str | None = None,
        is_hidden: bool | None = None,
    ) -> ProductOperationResult:
        update = product_payload(
            name=name,
            price=price,
            currency=currency,
            description=description,
            image_urls=image_urls,
            retailer_id=retailer_id,
            url=url,
            is_hidden=is_hidden,
        )

        def check() -> None:
            if not product_id:
                raise ValidationError("Product id is required")
            if not update:
                raise ValidationError("Nothing to update")

        async def call(t: BaseTransport) -> dict[str, Any]:
            product = await t.product_update(product_id, update)
            return {"product_id": product.id or product_id}

        return await self._command("update_product", ProductOperationResult, call, check=check)

    async def delete_products(self, product_ids: Sequence[str]) -> ProductOperationResult:
        def check() -> None:
            if not product_ids:
                raise ValidationError("Product ids cannot be empty")

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"deleted_count": await t.product_delete(list(product_ids))}

        return await self._command("delete_products", ProductOperationResult, call, check=check)
