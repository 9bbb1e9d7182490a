import asyncio
import re
from decimal import Decimal

import pytest

from services.auth_service.models import User
from services.product_service.models import Product


def order_payload(*items, payment_method="cash", **extra):
    payload = {
        "items": [{"product": pid, "quantity": qty} for pid, qty in items],
        "payment_method": payment_method,
        "phone_number": "0712345678",
        "shipping_info": {"full_name": "Wanjiku Kamau", "address": "Moi Avenue 12", "city": "Nairobi"},
    }
    payload.update(extra)
    return payload


async def place_order(client, headers, *items, **kwargs):
    return await client.post("/orders/", json=order_payload(*items, **kwargs), headers=headers)


# --- creation -----------------------------------------------------------------

async def test_order_totals_and_stock_decrement(client, buyer, seller, make_product, read_product, headers_for):
    product = await make_product(price="100.00", stock=5, seller=seller, image="sufuria.jpg")

    resp = await place_order(client, headers_for(buyer), (product.id, 2))

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    order = body["order"]
    assert order["subtotal"] == 200
    assert order["shipping"] == 20
    assert order["total"] == 220
    assert order["payment_status"] == "pending"
    assert order["status"] == "pending"
    assert order["buyer_id"] == buyer.id
    assert order["seller_id"] == seller.id
    assert order["shipping_info"]["city"] == "Nairobi"
    assert order["items"] == [
        {"product_id": product.id, "name": "Sufuria", "price": 100.0, "quantity": 2, "image": "sufuria.jpg"}
    ]
    assert (await read_product(product.id)).stock == 3


async def test_order_number_format(client, buyer, make_product, headers_for):
    product = await make_product()

    resp = await place_order(client, headers_for(buyer), (product.id, 1))

    assert re.fullmatch(r"#-\d{8}-\d{3}", resp.json()["order"]["order_number"])


async def test_shipping_is_rounded_half_up_to_cents(client, buyer, make_product, headers_for):
    cheap = await make_product(name="Pipi", price="0.05", stock=10)
    odd = await make_product(name="Sabuni", price="33.33", stock=10)

    first = (await place_order(client, headers_for(buyer), (cheap.id, 1))).json()["order"]
    second = (await place_order(client, headers_for(buyer), (odd.id, 1))).json()["order"]

    assert first["shipping"] == pytest.approx(0.01)
    assert first["total"] == pytest.approx(0.06)
    assert second["shipping"] == pytest.approx(3.33)
    assert second["total"] == pytest.approx(36.66)


async def test_line_items_keep_order_and_first_seller_wins(
    client, buyer, seller, stranger, make_product, headers_for
):
    unowned = await make_product(name="Kikombe", price="50.00", stock=3)
    first_owned = await make_product(name="Jiko", price="1200.00", stock=3, seller=seller)
    second_owned = await make_product(name="Kiti", price="800.00", stock=3, seller=stranger)

    resp = await place_order(
        client, headers_for(buyer), (unowned.id, 1), (first_owned.id, 1), (second_owned.id, 2)
    )

    order = resp.json()["order"]
    assert [it["name"] for it in order["items"]] == ["Kikombe", "Jiko", "Kiti"]
    assert order["seller_id"] == seller.id
    assert order["subtotal"] == 50 + 1200 + 1600


async def test_insufficient_stock_leaves_every_product_untouched(
    client, buyer, make_product, read_product, headers_for
):
    plenty = await make_product(name="Unga", stock=10)
    scarce = await make_product(name="Mafuta", stock=1)

    resp = await place_order(client, headers_for(buyer), (plenty.id, 4), (scarce.id, 2))

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Insufficient stock for Mafuta"}
    assert (await read_product(plenty.id)).stock == 10
    assert (await read_product(scarce.id)).stock == 1
    assert (await client.get(f"/orders/buyer/{buyer.id}", headers=headers_for(buyer))).json()["orders"] == []


async def test_same_product_twice_cannot_oversell(client, buyer, make_product, read_product, headers_for):
    product = await make_product(stock=5)

    resp = await place_order(client, headers_for(buyer), (product.id, 3), (product.id, 3))

    assert resp.status_code == 400
    assert (await read_product(product.id)).stock == 5


async def test_unknown_product_is_not_found(client, buyer, make_product, read_product, headers_for):
    product = await make_product(stock=5)

    resp = await place_order(client, headers_for(buyer), (product.id, 1), (9999, 1))

    assert resp.status_code == 404
    assert resp.json()["message"] == "Product not found"
    assert (await read_product(product.id)).stock == 5


@pytest.mark.parametrize("items", [[], "not-a-list", [{"product": 1, "quantity": 0}]])
async def test_invalid_items_are_rejected(client, buyer, headers_for, items):
    resp = await client.post(
        "/orders/",
        json={"items": items, "payment_method": "cash"},
        headers=headers_for(buyer),
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False


async def test_anonymous_order_uses_buyer_from_body(client, buyer, make_product):
    product = await make_product()

    resp = await client.post("/orders/", json=order_payload((product.id, 1), buyer=buyer.id))

    assert resp.status_code == 201
    assert resp.json()["order"]["buyer_id"] == buyer.id


async def test_order_without_any_buyer_is_rejected(client, make_product, read_product):
    product = await make_product(stock=5)

    resp = await client.post("/orders/", json=order_payload((product.id, 1)))

    assert resp.status_code == 400
    assert (await read_product(product.id)).stock == 5


# --- status update --------------------------------------------------------------

async def test_status_update_requires_internal_key(client, buyer, make_product, headers_for):
    product = await make_product()
    order = (await place_order(client, headers_for(buyer), (product.id, 1))).json()["order"]

    resp = await client.put(f"/orders/{order['id']}", json={"status": "shipped"}, headers=headers_for(buyer))

    assert resp.status_code == 403


async def test_delivered_status_stamps_delivery_time(client, buyer, make_product, headers_for, internal_headers):
    product = await make_product()
    order = (await place_order(client, headers_for(buyer), (product.id, 1))).json()["order"]
    assert order["actual_delivery"] is None

    shipped = await client.put(f"/orders/{order['id']}", json={"status": "shipped"}, headers=internal_headers)
    assert shipped.status_code == 200
    assert shipped.json()["order"]["actual_delivery"] is None

    delivered = await client.put(f"/orders/{order['id']}", json={"status": "delivered"}, headers=internal_headers)
    assert delivered.status_code == 200
    assert delivered.json()["success"] is True
    assert delivered.json()["order"]["status"] == "delivered"
    stamped = delivered.json()["order"]["actual_delivery"]
    assert stamped is not None

    again = await client.put(f"/orders/{order['id']}", json={"status": "delivered"}, headers=internal_headers)
    assert again.json()["order"]["actual_delivery"] == stamped


async def test_status_is_free_form(client, buyer, make_product, headers_for, internal_headers):
    product = await make_product()
    order = (await place_order(client, headers_for(buyer), (product.id, 1))).json()["order"]

    resp = await client.put(
        f"/orders/{order['id']}", json={"status": "awaiting-pickup"}, headers=internal_headers
    )

    assert resp.json()["order"]["status"] == "awaiting-pickup"


async def test_status_update_unknown_order(client, internal_headers):
    resp = await client.put("/orders/424242", json={"status": "shipped"}, headers=internal_headers)

    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Order not found"}


# --- cancellation ---------------------------------------------------------------

async def test_buyer_cancel_restores_stock(client, buyer, seller, make_product, read_product, headers_for):
    product = await make_product(price="100.00", stock=5, seller=seller)
    order = (await place_order(client, headers_for(buyer), (product.id, 2))).json()["order"]
    assert (await read_product(product.id)).stock == 3

    resp = await client.put(f"/orders/cancel/{order['id']}", headers=headers_for(buyer))

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["order"]["status"] == "cancelled"
    assert (await read_product(product.id)).stock == 5


async def test_seller_cancel_restores_every_line(client, buyer, seller, make_product, read_product, headers_for):
    jiko = await make_product(name="Jiko", stock=4, seller=seller)
    kiti = await make_product(name="Kiti", stock=9, seller=seller)
    order = (await place_order(client, headers_for(buyer), (jiko.id, 1), (kiti.id, 3))).json()["order"]

    resp = await client.put(f"/orders/cancel/{order['id']}", headers=headers_for(seller))

    assert resp.status_code == 200
    assert (await read_product(jiko.id)).stock == 4
    assert (await read_product(kiti.id)).stock == 9


async def test_stranger_cannot_cancel(client, buyer, seller, stranger, make_product, read_product, headers_for):
    product = await make_product(stock=5, seller=seller)
    order = (await place_order(client, headers_for(buyer), (product.id, 2))).json()["order"]

    resp = await client.put(f"/orders/cancel/{order['id']}", headers=headers_for(stranger))

    assert resp.status_code == 403
    assert resp.json() == {"success": False, "message": "Not authorized to cancel this order"}
    assert (await read_product(product.id)).stock == 3
    still = await client.get(f"/orders/{order['id']}", headers=headers_for(buyer))
    assert still.json()["order"]["status"] == "pending"


@pytest.mark.parametrize("status", ["shipped", "Delivered", "CANCELLED"])
async def test_terminal_orders_cannot_be_cancelled(
    client, buyer, make_product, read_product, headers_for, internal_headers, status
):
    product = await make_product(stock=5)
    order = (await place_order(client, headers_for(buyer), (product.id, 2))).json()["order"]
    await client.put(f"/orders/{order['id']}", json={"status": status}, headers=internal_headers)

    resp = await client.put(f"/orders/cancel/{order['id']}", headers=headers_for(buyer))

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Order cannot be cancelled"}
    assert (await read_product(product.id)).stock == 3


async def test_second_cancel_does_not_restore_twice(client, buyer, make_product, read_product, headers_for):
    product = await make_product(stock=5)
    order = (await place_order(client, headers_for(buyer), (product.id, 2))).json()["order"]

    first = await client.put(f"/orders/cancel/{order['id']}", headers=headers_for(buyer))
    second = await client.put(f"/orders/cancel/{order['id']}", headers=headers_for(buyer))

    assert first.status_code == 200
    assert second.status_code == 400
    assert (await read_product(product.id)).stock == 5


async def test_cancel_unknown_order(client, buyer, headers_for):
    resp = await client.put("/orders/cancel/31337", headers=headers_for(buyer))

    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Order not found"}


async def test_cancel_requires_authentication(client, buyer, make_product, headers_for):
    product = await make_product()
    order = (await place_order(client, headers_for(buyer), (product.id, 1))).json()["order"]

    resp = await client.put(f"/orders/cancel/{order['id']}")

    assert resp.status_code == 401


async def test_cancel_survives_deleted_product(client, buyer, seller, make_product, read_product, headers_for):
    kept = await make_product(name="Jiko", stock=4, seller=seller)
    gone = await make_product(name="Kiti", stock=4, seller=seller)
    order = (await place_order(client, headers_for(buyer), (kept.id, 1), (gone.id, 1))).json()["order"]
    assert (await client.delete(f"/products/{gone.id}", headers=headers_for(seller))).status_code == 204

    resp = await client.put(f"/orders/cancel/{order['id']}", headers=headers_for(buyer))

    assert resp.status_code == 200
    assert (await read_product(kept.id)).stock == 4
    # the snapshot still describes the deleted product
    assert [it["name"] for it in resp.json()["order"]["items"]] == ["Jiko", "Kiti"]


# --- listings -------------------------------------------------------------------

async def test_buyer_and_seller_listings(client, buyer, seller, make_product, headers_for):
    product = await make_product(seller=seller, stock=10)
    first = (await place_order(client, headers_for(buyer), (product.id, 1))).json()["order"]
    second = (await place_order(client, headers_for(buyer), (product.id, 2))).json()["order"]

    mine = await client.get(f"/orders/buyer/{buyer.id}", headers=headers_for(buyer))
    sold = await client.get(f"/orders/seller/{seller.id}", headers=headers_for(seller))

    assert [o["id"] for o in mine.json()["orders"]] == [second["id"], first["id"]]
    assert [o["id"] for o in sold.json()["orders"]] == [second["id"], first["id"]]
    assert all(o["buyer_id"] == buyer.id for o in sold.json()["orders"])


async def test_cannot_list_someone_elses_orders(client, buyer, stranger, headers_for):
    resp = await client.get(f"/orders/buyer/{buyer.id}", headers=headers_for(stranger))

    assert resp.status_code == 403


async def test_order_detail_is_private(client, buyer, stranger, make_product, headers_for):
    product = await make_product()
    order = (await place_order(client, headers_for(buyer), (product.id, 1))).json()["order"]

    assert (await client.get(f"/orders/{order['id']}", headers=headers_for(buyer))).status_code == 200
    assert (await client.get(f"/orders/{order['id']}", headers=headers_for(stranger))).status_code == 403


async def test_concurrent_cancels_restore_stock_once(pooled_client, pooled_session_factory, headers_for):
    async with pooled_session_factory() as session:
        user = User(name="Wanjiku", email="wanjiku@example.com", hashed_password="not-a-real-hash")
        product = Product(name="Sufuria", price=Decimal("100.00"), stock=5, review_count=0)
        session.add_all([user, product])
        await session.commit()
    order = (await place_order(pooled_client, headers_for(user), (product.id, 2))).json()["order"]

    responses = await asyncio.gather(
        pooled_client.put(f"/orders/cancel/{order['id']}", headers=headers_for(user)),
        pooled_client.put(f"/orders/cancel/{order['id']}", headers=headers_for(user)),
    )

    assert sorted(r.status_code for r in responses) == [200, 400]
    async with pooled_session_factory() as session:
        assert (await session.get(Product, product.id)).stock == 5
