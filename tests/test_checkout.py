# tests/test_checkout.py
import asyncio

from pos.errors import EmptyCartError
from pos.models import PaymentInfo

OBJECT = {"Accept": "application/vnd.pgrst.object+json"}


def run(coro):
    return asyncio.run(coro)


def is_stock_update(request, product_id=None):
    if request.method != "PATCH" or not request.url.path.endswith("/products"):
        return False
    return product_id is None or request.url.params.get("id") == f"eq.{product_id}"


def stock_of(api, product_id):
    return api.get("/rest/v1/products", params={"id": f"eq.{product_id}"}, headers=OBJECT).json()["stock"]


def test_empty_cart_fails_without_remote_calls(make_session):
    pos, transport = make_session()

    async def scenario():
        result = await pos.checkout(PaymentInfo())
        await pos.close()
        return result

    result = run(scenario())
    assert result.ok is False
    assert result.error == "empty cart"
    assert isinstance(result.cause, EmptyCartError)
    assert transport.requests == []


def test_successful_checkout_persists_sale_and_decrements_stock(seed, make_session, api):
    pos, _ = make_session()
    oli_id = seed["products"]["OLI-1"]["id"]
    ban_id = seed["products"]["BAN-1"]["id"]

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        pos.cart.add_item(pos.catalog.get(oli_id))
        pos.cart.add_item(pos.catalog.get(ban_id))
        result = await pos.checkout(PaymentInfo(method="Tunai", amount=200000, customer_name="Budi"))
        await pos.close()
        return result

    result = run(scenario())
    assert result.ok, result.error
    trx = result.transaction
    assert trx.transaction_code.startswith("TRX-")
    assert trx.total_amount == 2 * 50000 + 30000
    assert trx.payment_amount == 200000
    assert trx.change_amount == 200000 - 130000
    assert trx.customer_name == "Budi"
    assert trx.status == "completed"
    assert [(i.product_id, i.quantity, i.price, i.subtotal) for i in trx.items] == [
        (oli_id, 2, 50000, 100000),
        (ban_id, 1, 30000, 30000),
    ]

    stored = api.get("/rest/v1/transaction", params={"select": "*,transaction_items(*)"}, headers=OBJECT).json()
    assert stored["transaction_code"] == trx.transaction_code
    assert len(stored["transaction_items"]) == 2
    assert stock_of(api, oli_id) == 3
    assert stock_of(api, ban_id) == 2

    # cart cleared, catalog and stats refreshed
    assert pos.cart.size() == 0
    assert pos.catalog.get(oli_id).stock == 3
    stats = pos.stats()
    assert stats.cart_items == 0
    assert stats.low_stock == 2


def test_customer_defaults_to_placeholder(seed, make_session):
    pos, _ = make_session()
    oli_id = seed["products"]["OLI-1"]["id"]

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        result = await pos.checkout(pos.payment())
        await pos.close()
        return result

    result = run(scenario())
    assert result.ok
    assert result.transaction.customer_name == "Guest"
    assert result.transaction.payment_method == "Tunai"
    assert result.transaction.payment_amount == 50000
    assert result.transaction.change_amount == 0


def test_underpayment_is_rejected_before_any_write(seed, make_session):
    pos, transport = make_session()
    oli_id = seed["products"]["OLI-1"]["id"]

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        sent = len(transport.requests)
        result = await pos.checkout(PaymentInfo(amount=100))
        await pos.close()
        return result, sent

    result, sent = run(scenario())
    assert result.ok is False
    assert result.step == 0
    assert len(transport.requests) == sent
    assert pos.cart.size() == 1


def test_transaction_insert_failure_changes_nothing(seed, make_session, api):
    pos, _ = make_session(lambda req: req.method == "POST" and req.url.path.endswith("/transaction"))
    oli_id = seed["products"]["OLI-1"]["id"]

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        result = await pos.checkout(PaymentInfo())
        await pos.close()
        return result

    result = run(scenario())
    assert result.ok is False
    assert result.step == 1
    assert result.transaction is None
    assert pos.cart.size() == 1
    assert pos.sequencer.pending is None
    assert api.get("/rest/v1/transaction").json() == []
    assert stock_of(api, oli_id) == 5


def test_items_failure_leaves_transaction_without_items(seed, make_session, api):
    pos, _ = make_session(lambda req: req.method == "POST" and req.url.path.endswith("/transaction_items"))
    oli_id = seed["products"]["OLI-1"]["id"]

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        result = await pos.checkout(PaymentInfo())
        await pos.close()
        return result

    result = run(scenario())
    assert result.ok is False
    assert result.step == 2
    assert result.transaction is not None
    assert len(api.get("/rest/v1/transaction").json()) == 1
    assert api.get("/rest/v1/transaction_items").json() == []
    assert stock_of(api, oli_id) == 5
    assert pos.cart.size() == 1


def test_stock_failure_on_second_item_keeps_partial_writes(seed, make_session, api):
    ban_id = seed["products"]["BAN-1"]["id"]
    oli_id = seed["products"]["OLI-1"]["id"]
    pos, _ = make_session(lambda req: is_stock_update(req, ban_id))

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        pos.cart.add_item(pos.catalog.get(ban_id))
        result = await pos.checkout(PaymentInfo())
        await pos.close()
        return result

    result = run(scenario())
    assert result.ok is False
    assert result.step == 3
    assert "BAN-1" in result.error
    assert result.cause.status_code == 503
    assert len(api.get("/rest/v1/transaction").json()) == 1
    assert len(api.get("/rest/v1/transaction_items").json()) == 2
    assert stock_of(api, oli_id) == 4
    assert stock_of(api, ban_id) == 3
    assert [l.product_id for l in pos.cart] == [oli_id, ban_id]


def test_retry_resumes_failed_checkout_without_duplicates(seed, make_session, api):
    ban_id = seed["products"]["BAN-1"]["id"]
    oli_id = seed["products"]["OLI-1"]["id"]
    outage = {"on": True}
    pos, transport = make_session(lambda req: outage["on"] and is_stock_update(req, ban_id))

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        pos.cart.add_item(pos.catalog.get(ban_id))
        first = await pos.checkout(PaymentInfo())
        outage["on"] = False
        before = len(transport.requests)
        second = await pos.checkout(PaymentInfo())
        retried = transport.requests[before:]
        await pos.close()
        return first, second, retried

    first, second, retried = run(scenario())
    assert first.ok is False
    assert second.ok is True
    assert second.transaction.transaction_code == first.transaction.transaction_code
    # only the missing stock write is repeated, then the catalog reloads
    writes = [r for r in retried if r.method != "GET"]
    assert len(writes) == 1 and is_stock_update(writes[0], ban_id)
    assert len(api.get("/rest/v1/transaction").json()) == 1
    assert len(api.get("/rest/v1/transaction_items").json()) == 2
    assert stock_of(api, oli_id) == 4
    assert stock_of(api, ban_id) == 2
    assert pos.cart.size() == 0
    assert pos.sequencer.pending is None


def test_changed_cart_after_failure_starts_new_transaction(seed, make_session, api):
    oli_id = seed["products"]["OLI-1"]["id"]
    outage = {"on": True}
    pos, _ = make_session(lambda req: outage["on"] and req.url.path.endswith("/transaction_items"))

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        first = await pos.checkout(PaymentInfo())
        pos.cart.add_item(pos.catalog.get(oli_id))
        outage["on"] = False
        second = await pos.checkout(PaymentInfo())
        await pos.close()
        return first, second

    first, second = run(scenario())
    assert second.ok
    assert second.transaction.transaction_code != first.transaction.transaction_code
    assert second.transaction.total_amount == 100000
    # the orphan transaction from the first attempt stays behind
    assert len(api.get("/rest/v1/transaction").json()) == 2
    assert stock_of(api, oli_id) == 3


def test_refresh_failure_after_commit_is_still_success(seed, make_session):
    oli_id = seed["products"]["OLI-1"]["id"]
    committed = {"done": False}

    def should_fail(req):
        if is_stock_update(req):
            committed["done"] = True
            return False
        return committed["done"] and req.method == "GET"

    pos, _ = make_session(should_fail)

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        result = await pos.checkout(PaymentInfo())
        await pos.close()
        return result

    result = run(scenario())
    assert result.ok
    assert result.refresh_error
    assert pos.cart.size() == 0
    # previous snapshot kept
    assert pos.catalog.get(oli_id).stock == 5
