# comprint/client/api.py
from __future__ import annotations

import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Union

import httpx

from comprint.client.cache import CacheKey, QueryCache, RoleCache

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000/api/v1"

# (previous_quantity, new_quantity) -> proceed?
ConfirmReduction = Callable[[int, int], Union[bool, Awaitable[bool]]]


class ApiError(Exception):
    def __init__(self, status_code: int, error: Any):
        self.status_code = status_code
        self.error = error
        super().__init__(f"{status_code}: {error}")


def _clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop None values; booleans travel as the strings 'true' / 'false'."""
    out: Dict[str, Any] = {}
    for k, v in (params or {}).items():
        if v is None:
            continue
        if isinstance(v, bool):
            v = "true" if v else "false"
        out[k] = str(v)
    return out


class ComprintClient:
    """
    Async client for the Comprint API.

    GET calls are served from a TTL QueryCache; every mutation invalidates
    the cache prefixes of the resources it touches. The signed-in user's
    role is held in a RoleCache, cleared on sign-out, on refresh_role() and
    whenever a user record is changed through this client.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache_ttl: float = 30.0,
        role_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport)
        self.cache = QueryCache(ttl=cache_ttl, clock=clock)
        self.roles = RoleCache(ttl=role_ttl, clock=clock)
        self._token: Optional[str] = None
        self.user_id: Optional[str] = None

    async def __aenter__(self) -> "ComprintClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -----------------------------
    # Transport
    # -----------------------------
    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        resp = await self._http.request(method, path, headers=headers, **kwargs)
        if resp.status_code >= 400:
            try:
                error = resp.json().get("error")
            except ValueError:
                error = resp.text
            raise ApiError(resp.status_code, error)
        return resp.json()

    async def _query(self, key: CacheKey, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        clean = _clean_params(params)
        full_key = key + (tuple(sorted(clean.items())),)
        cached = self.cache.get(full_key)
        if cached is not None:
            return cached

        result = await self._request("GET", path, params=clean)
        self.cache.set(full_key, result)
        return result

    async def _mutate(self, method: str, path: str, invalidates: Iterable[CacheKey], **kwargs) -> Any:
        result = await self._request(method, path, **kwargs)
        for prefix in invalidates:
            self.cache.invalidate(prefix)
        return result

    # -----------------------------
    # Session
    # -----------------------------
    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        body = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._token = body["access_token"]
        self.user_id = body["user"]["id"]
        self.cache.clear()
        self.roles.set(self.user_id, body["user"]["role"])
        return body["user"]

    async def sign_out(self) -> None:
        self._token = None
        self.user_id = None
        self.cache.clear()
        self.roles.invalidate()

    async def current_user(self) -> Dict[str, Any]:
        return await self._query(("auth", "me"), "/auth/me")

    async def role(self) -> Optional[str]:
        if self.user_id is None:
            return None
        cached = self.roles.get(self.user_id)
        if cached is not None:
            return cached
        me = await self._request("GET", "/auth/me")
        self.roles.set(self.user_id, me["role"])
        return me["role"]

    async def refresh_role(self) -> Optional[str]:
        if self.user_id is not None:
            self.roles.invalidate(self.user_id)
        self.cache.invalidate(("auth",))
        return await self.role()

    async def update_profile(self, **changes) -> Dict[str, Any]:
        return await self._mutate("PATCH", "/auth/me", [("auth",), ("users",)], json=changes)

    # -----------------------------
    # Branches
    # -----------------------------
    async def list_branches(self):
        return await self._query(("branches",), "/branches")

    async def create_branch(self, data: Dict[str, Any]):
        return await self._mutate("POST", "/branches", [("branches",)], json=data)

    async def update_branch(self, branch_id: str, data: Dict[str, Any]):
        return await self._mutate("PATCH", f"/branches/{branch_id}", [("branches",)], json=data)

    async def delete_branch(self, branch_id: str):
        return await self._mutate("DELETE", f"/branches/{branch_id}", [("branches",)])

    # -----------------------------
    # Product categories
    # -----------------------------
    async def list_categories(self, query: Optional[str] = None):
        return await self._query(("categories",), "/categories", {"query": query})

    async def get_category(self, category_id: str):
        return await self._query(("categories", category_id), f"/categories/{category_id}")

    async def create_category(self, data: Dict[str, Any]):
        return await self._mutate("POST", "/categories", [("categories",)], json=data)

    async def update_category(self, category_id: str, data: Dict[str, Any]):
        return await self._mutate("PATCH", f"/categories/{category_id}", [("categories",)], json=data)

    async def delete_category(self, category_id: str):
        return await self._mutate("DELETE", f"/categories/{category_id}", [("categories",)])

    # -----------------------------
    # Products
    # -----------------------------
    async def list_products(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        active: Optional[bool] = None,
    ):
        return await self._query(
            ("products",), "/products", {"query": query, "category": category, "active": active}
        )

    async def get_product(self, product_id: str):
        return await self._query(("products", product_id), f"/products/{product_id}")

    async def create_product(self, data: Dict[str, Any]):
        # creating a product also creates its inventory record
        return await self._mutate("POST", "/products", [("products",), ("inventory",), ("reports",)], json=data)

    async def update_product(self, product_id: str, data: Dict[str, Any]):
        return await self._mutate(
            "PATCH", f"/products/{product_id}", [("products",), ("inventory",), ("reports",)], json=data
        )

    async def delete_product(self, product_id: str):
        return await self._mutate(
            "DELETE", f"/products/{product_id}", [("products",), ("inventory",), ("reports",)]
        )

    # -----------------------------
    # Inventory
    # -----------------------------
    async def list_inventory(
        self,
        product_id: Optional[str] = None,
        low_stock: Optional[bool] = None,
        out_of_stock: Optional[bool] = None,
    ):
        body = await self._query(
            ("inventory",),
            "/inventory",
            {"product_id": product_id, "low_stock": low_stock, "out_of_stock": out_of_stock},
        )
        return body["data"]

    async def get_inventory(self, record_id: str):
        body = await self._query(("inventory", record_id), f"/inventory/{record_id}")
        return body["data"]

    async def create_inventory(self, data: Dict[str, Any]):
        body = await self._mutate("POST", "/inventory", [("inventory",), ("reports",)], json=data)
        return body["data"]

    async def update_inventory(self, record_id: str, data: Dict[str, Any]):
        body = await self._mutate("PATCH", f"/inventory/{record_id}", [("inventory",), ("reports",)], json=data)
        return body["data"]

    async def delete_inventory(self, record_id: str):
        return await self._mutate("DELETE", f"/inventory/{record_id}", [("inventory",), ("reports",)])

    async def update_stock(
        self,
        record_id: str,
        quantity: int,
        *,
        is_restock: bool = False,
        confirm_reduction: Optional[ConfirmReduction] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Restock (add) or set the quantity of an inventory record.

        In set mode, when the new value is lower than the current one and
        `confirm_reduction` is given, it is asked first; a falsy answer
        aborts and None is returned.
        """
        if not is_restock and confirm_reduction is not None:
            current = (await self._request("GET", f"/inventory/{record_id}"))["data"]["quantity"]
            if quantity < current:
                answer = confirm_reduction(current, quantity)
                if inspect.isawaitable(answer):
                    answer = await answer
                if not answer:
                    logger.info("Stock reduction on %s cancelled (%s -> %s)", record_id, current, quantity)
                    return None

        return await self._mutate(
            "POST",
            f"/inventory/{record_id}/stock",
            [("inventory",), ("reports",)],
            json={"quantity": quantity, "is_restock": is_restock},
        )

    # -----------------------------
    # Customers
    # -----------------------------
    async def list_customers(self, query: Optional[str] = None):
        body = await self._query(("customers",), "/customers", {"query": query})
        return body["data"]

    async def get_customer(self, customer_id: str):
        body = await self._query(("customers", customer_id), f"/customers/{customer_id}")
        return body["data"]

    async def create_customer(self, data: Dict[str, Any]):
        body = await self._mutate("POST", "/customers", [("customers",), ("reports",)], json=data)
        return body["data"]

    async def update_customer(self, customer_id: str, data: Dict[str, Any]):
        body = await self._mutate("PUT", f"/customers/{customer_id}", [("customers",), ("reports",)], json=data)
        return body["data"]

    async def delete_customer(self, customer_id: str):
        return await self._mutate("DELETE", f"/customers/{customer_id}", [("customers",), ("reports",)])

    # -----------------------------
    # Sales & commissions
    # -----------------------------
    async def list_sales(self, **filters):
        body = await self._query(("sales",), "/sales", filters)
        return body["data"]

    async def get_sale(self, sale_id: str):
        body = await self._query(("sales", sale_id), f"/sales/{sale_id}")
        return body["data"]

    async def create_sale(self, sale: Dict[str, Any], items: Iterable[Dict[str, Any]]):
        body = await self._mutate(
            "POST",
            "/sales",
            [("sales",), ("commissions",), ("reports",)],
            json={"sale": sale, "saleItems": list(items)},
        )
        return body["data"]

    async def delete_sale(self, sale_id: str):
        return await self._mutate(
            "DELETE", f"/sales/{sale_id}", [("sales",), ("commissions",), ("reports",)]
        )

    async def list_commissions(self, **filters):
        body = await self._query(("commissions",), "/commissions", filters)
        return body["data"]

    async def get_commission(self, commission_id: str):
        body = await self._query(("commissions", commission_id), f"/commissions/{commission_id}")
        return body["data"]

    async def set_commission_paid(self, commission_id: str, is_paid: bool):
        body = await self._mutate(
            "PATCH", f"/commissions/{commission_id}", [("commissions",)], json={"is_paid": is_paid}
        )
        return body["data"]

    async def repair_commissions(self, only_zero_amount: bool = False):
        params = _clean_params({"onlyZeroAmount": only_zero_amount or None})
        body = await self._mutate("POST", "/commissions/repair", [("commissions",)], params=params)
        return body["results"]

    async def commission_report(self, report_type: str = "summary", **filters):
        body = await self._query(
            ("commissions", "reports"), "/commissions/reports", {"reportType": report_type, **filters}
        )
        return body["data"]

    # -----------------------------
    # Service desk
    # -----------------------------
    async def list_service_categories(self, query: Optional[str] = None, active: Optional[bool] = None):
        return await self._query(("service-categories",), "/service-categories", {"query": query, "active": active})

    async def create_service_category(self, data: Dict[str, Any]):
        return await self._mutate("POST", "/service-categories", [("service-categories",)], json=data)

    async def list_service_requests(self, **filters):
        return await self._query(("service-requests",), "/service-requests", filters)

    async def get_service_request(self, request_id: str):
        return await self._query(("service-requests", request_id), f"/service-requests/{request_id}")

    async def create_service_request(self, data: Dict[str, Any]):
        return await self._mutate("POST", "/service-requests", [("service-requests",)], json=data)

    async def update_service_request(self, request_id: str, data: Dict[str, Any]):
        return await self._mutate(
            "PUT", f"/service-requests/{request_id}", [("service-requests",)], json=data
        )

    async def delete_service_request(self, request_id: str):
        return await self._mutate("DELETE", f"/service-requests/{request_id}", [("service-requests",)])

    async def list_service_request_updates(self, request_id: str, **filters):
        return await self._query(
            ("service-requests", request_id, "updates"), f"/service-requests/{request_id}/updates", filters
        )

    async def add_service_request_update(self, request_id: str, data: Dict[str, Any]):
        return await self._mutate(
            "POST",
            f"/service-requests/{request_id}/updates",
            [("service-requests", request_id)],
            json=data,
        )

    async def list_attachments(self, request_id: str):
        return await self._query(
            ("service-requests", request_id, "attachments"), f"/service-requests/{request_id}/attachments"
        )

    async def upload_attachment(
        self,
        request_id: str,
        filename: str,
        content: bytes,
        content_type: str,
        *,
        description: Optional[str] = None,
        is_customer_visible: bool = False,
    ):
        form = _clean_params(
            {
                "serviceRequestId": request_id,
                "description": description,
                "isCustomerVisible": is_customer_visible,
            }
        )
        body = await self._mutate(
            "POST",
            "/service-requests/upload",
            [("service-requests", request_id)],
            data=form,
            files={"file": (filename, content, content_type)},
        )
        return body["attachment"]

    async def delete_attachment(self, request_id: str, attachment_id: str):
        return await self._mutate(
            "DELETE",
            f"/service-requests/{request_id}/attachments/{attachment_id}",
            [("service-requests", request_id)],
        )

    # -----------------------------
    # Users
    # -----------------------------
    def _user_changed(self, user_id: Optional[str]) -> None:
        self.cache.invalidate(("users",))
        self.cache.invalidate(("auth",))
        self.roles.invalidate(user_id)

    async def list_users(self, **filters):
        return await self._query(("users",), "/users", filters)

    async def create_user(self, data: Dict[str, Any]):
        body = await self._request("POST", "/users", json=data)
        self._user_changed(body["userId"])
        return body

    async def update_user(self, user_id: str, data: Dict[str, Any]):
        body = await self._request("PATCH", f"/users/{user_id}", json=data)
        self._user_changed(user_id)
        return body

    async def delete_user(self, user_id: str):
        body = await self._request("DELETE", f"/users/{user_id}")
        self._user_changed(user_id)
        return body

    async def toggle_user_status(self, user_id: str):
        body = await self._request("POST", f"/users/{user_id}/toggle-status")
        self._user_changed(user_id)
        return body

    # -----------------------------
    # Reports
    # -----------------------------
    async def sales_performance(self, **filters):
        return await self._query(("reports", "sales-performance"), "/reports/sales-performance", filters)

    async def product_performance(self, **filters):
        return await self._query(("reports", "product-performance"), "/reports/product-performance", filters)

    async def customer_report(self, **filters):
        return await self._query(("reports", "customers"), "/reports/customers", filters)

    async def time_analytics(self, **filters):
        return await self._query(("reports", "time-analytics"), "/reports/time-analytics", filters)
