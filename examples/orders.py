"""
Order listing served through lazy field resolution.

A mock database with deliberately slow queries stands behind an ``Order``
model. The ``resolve`` helper plays the part of a query executor: it reads only
the requested fields from each proxy, so expensive lookups such as the fraud
score never run unless asked for. Customer lookups of all orders in a
listing are collapsed into one query by a request-scoped batching loader,
called from inside a shared computation.

    python examples/orders.py
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from lazyfields import configure, lazy_fields, output_type, schema_storage, shared

logger = logging.getLogger(__name__)


@output_type
class OrderDTO:
    """Order summary."""
    entity_id: int
    increment_id: str
    status: str
    grand_total: float
    currency_code: str
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    shipping_method: Optional[str] = None
    estimated_delivery: Optional[str] = None
    fraud_score: Optional[str] = None


# Materialize every output type declared above
schema_storage.materialize()


MOCK_ORDERS = [
    {"id": 1, "increment_id": "ORD-001", "status": "complete", "total": 150.00, "currency": "USD", "customer_id": 101},
    {"id": 2, "increment_id": "ORD-002", "status": "pending", "total": 299.99, "currency": "USD", "customer_id": 102},
    {"id": 3, "increment_id": "ORD-003", "status": "processing", "total": 75.50, "currency": "USD", "customer_id": 101},
    {"id": 4, "increment_id": "ORD-004", "status": "complete", "total": 1200.00, "currency": "USD", "customer_id": 103},
    {"id": 5, "increment_id": "ORD-005", "status": "cancelled", "total": 50.00, "currency": "USD", "customer_id": 104},
]

MOCK_CUSTOMERS = {
    101: {"email": "john@example.com", "name": "John Doe"},
    102: {"email": "jane@example.com", "name": "Jane Smith"},
    103: {"email": "bob@example.com", "name": "Bob Wilson"},
    104: {"email": "alice@example.com", "name": "Alice Brown"},
}

SHIPPING_METHODS = ["Standard Shipping", "Express Delivery", "Next Day Air", "Ground"]
RISK_SCORES = ["Low Risk", "Medium Risk", "High Risk", "Very Low Risk"]


class MockDatabase:
    """Simulated data source; every query sleeps and is recorded in ``call_log``."""

    def __init__(self):
        self.call_log: List[str] = []

    def _record(self, query: str) -> None:
        self.call_log.append(query)
        logger.info(f"DB: {query}")

    def _find(self, order_id: int) -> Optional[Dict[str, Any]]:
        return next((o for o in MOCK_ORDERS if o["id"] == order_id), None)

    async def order_ids(self) -> List[int]:
        self._record("order_ids()")
        await asyncio.sleep(0.01)
        return [o["id"] for o in MOCK_ORDERS]

    async def order_basic(self, order_id: int) -> Optional[Dict[str, str]]:
        self._record(f"order_basic({order_id})")
        await asyncio.sleep(0.02)
        order = self._find(order_id)
        if order is None:
            return None
        return {"increment_id": order["increment_id"], "status": order["status"]}

    async def order_totals(self, order_id: int) -> Optional[Dict[str, Any]]:
        self._record(f"order_totals({order_id})")
        await asyncio.sleep(0.05)
        order = self._find(order_id)
        if order is None:
            return None
        return {"total": order["total"], "currency": order["currency"]}

    async def customers_for_orders(self, order_ids: List[int]) -> Dict[int, Optional[Dict[str, str]]]:
        self._record(f"customers_for_orders({order_ids})")
        await asyncio.sleep(0.1)
        customers = {}
        for order_id in order_ids:
            order = self._find(order_id)
            customers[order_id] = MOCK_CUSTOMERS.get(order["customer_id"]) if order else None
        return customers

    async def shipping_method(self, order_id: int) -> str:
        self._record(f"shipping_method({order_id})")
        await asyncio.sleep(0.15)
        return SHIPPING_METHODS[order_id % len(SHIPPING_METHODS)]

    async def estimated_delivery(self, order_id: int) -> str:
        self._record(f"estimated_delivery({order_id})")
        await asyncio.sleep(0.5)
        return f"in {3 + order_id % 7} days"

    async def fraud_score(self, order_id: int) -> str:
        self._record(f"fraud_score({order_id})")
        await asyncio.sleep(1.0)
        return RISK_SCORES[order_id % len(RISK_SCORES)]


class CustomerLoader:
    """
    Request-scoped batching loader for order customers.

    Every ``load`` issued during the same event loop iteration is answered by
    a single ``customers_for_orders`` query. Create one loader per request.
    """

    def __init__(self, db: MockDatabase):
        self.db = db
        self._queue: List[tuple] = []

    def load(self, order_id: int) -> "asyncio.Future[Optional[Dict[str, str]]]":
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((order_id, future))
        if len(self._queue) == 1:
            loop.call_soon(lambda: asyncio.ensure_future(self._dispatch()))
        return future

    async def _dispatch(self) -> None:
        queue, self._queue = self._queue, []
        try:
            customers = await self.db.customers_for_orders([order_id for order_id, _ in queue])
        except Exception as e:
            for _, future in queue:
                future.set_exception(e)
            return
        for order_id, future in queue:
            future.set_result(customers.get(order_id))


@lazy_fields(OrderDTO)
class Order:
    def __init__(self, order_id: int, db: MockDatabase, customers: CustomerLoader):
        self.order_id = order_id
        self.db = db
        self.customers = customers

    def getEntityId(self) -> int:
        return self.order_id

    async def getIncrementId(self) -> str:
        return (await self.getBasicData())["increment_id"]

    async def getStatus(self) -> str:
        return (await self.getBasicData())["status"]

    async def getGrandTotal(self) -> float:
        return (await self.getTotalsData())["total"]

    async def getCurrencyCode(self) -> str:
        return (await self.getTotalsData())["currency"]

    async def getCustomerEmail(self) -> Optional[str]:
        customer = await self.getCustomerData()
        return customer["email"] if customer else None

    async def getCustomerName(self) -> Optional[str]:
        customer = await self.getCustomerData()
        return customer["name"] if customer else None

    async def getShippingMethod(self) -> str:
        return await self.db.shipping_method(self.order_id)

    async def getEstimatedDelivery(self) -> str:
        return await self.db.estimated_delivery(self.order_id)

    async def getFraudScore(self) -> str:
        return await self.db.fraud_score(self.order_id)

    @shared
    async def getBasicData(self) -> Dict[str, str]:
        return await self.db.order_basic(self.order_id) or {"increment_id": "", "status": ""}

    @shared
    async def getTotalsData(self) -> Dict[str, Any]:
        return await self.db.order_totals(self.order_id) or {"total": 0.0, "currency": "USD"}

    @shared
    async def getCustomerData(self) -> Optional[Dict[str, str]]:
        return await self.customers.load(self.order_id)


async def resolve(obj: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """Read ``fields`` from ``obj`` concurrently, awaiting async results."""
    names = list(fields)

    async def read(name: str) -> Any:
        value = getattr(obj, name)
        if inspect.isawaitable(value):
            value = await value
        return value

    values = await asyncio.gather(*(read(name) for name in names))
    return dict(zip(names, values))


async def list_orders(db: MockDatabase, fields: Iterable[str]) -> List[Dict[str, Any]]:
    customers = CustomerLoader(db)
    orders = [Order(order_id, db, customers) for order_id in await db.order_ids()]
    return await asyncio.gather(*(resolve(order, fields) for order in orders))


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")
    configure(timing=True)

    for fields in (
        ["entity_id", "status"],
        ["increment_id", "customer_email", "customer_name"],
        ["entity_id", "grand_total", "fraud_score"],
    ):
        db = MockDatabase()
        start = time.perf_counter()
        rows = await list_orders(db, fields)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"Query {fields}: {len(db.call_log)} DB call(s) in {elapsed:.0f}ms")
        for row in rows:
            logger.info(f"  {row}")


if __name__ == "__main__":
    asyncio.run(main())
