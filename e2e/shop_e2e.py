#!/usr/bin/env python3
"""
ShopIT end-to-end checks against a running service.

Run:
  python e2e/shop_e2e.py

Needs an existing admin account (promote a user with the admin routes or
directly in the database).

Optional env:
  SHOP_BASE=http://localhost:8000
  ADMIN_EMAIL=admin@shopit.local
  ADMIN_PASSWORD=adminpassword
  DEBUG=1
"""

from __future__ import annotations

import os
import sys
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests


# =========================
# Simple CLI UI (ANSI)
# =========================

class Style:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"

    BOX_LINE = "─"
    BOX_VERT = "│"
    BOX_TL = "┌"
    BOX_TR = "┐"
    BOX_BL = "└"
    BOX_BR = "┘"


def banner():
    title = " ShopIT E2E Checks "
    line = Style.BOX_LINE * len(title)
    print()
    print(f"{Style.CYAN}{Style.BOX_TL}{line}{Style.BOX_TR}{Style.RESET}")
    print(f"{Style.CYAN}{Style.BOX_VERT}{Style.RESET}{Style.BOLD}{title}{Style.RESET}{Style.CYAN}{Style.BOX_VERT}{Style.RESET}")
    print(f"{Style.CYAN}{Style.BOX_BL}{line}{Style.BOX_BR}{Style.RESET}")
    print()


def section_title(text: str):
    line = Style.BOX_LINE * (len(text) + 2)
    print(f"\n{Style.BLUE}{Style.BOX_TL}{line}{Style.BOX_TR}{Style.RESET}")
    print(f"{Style.BLUE}{Style.BOX_VERT} {Style.BOLD}{text}{Style.RESET}{Style.BLUE} {Style.BOX_VERT}{Style.RESET}")
    print(f"{Style.BLUE}{Style.BOX_BL}{line}{Style.BOX_BR}{Style.RESET}")


def info(msg: str):
    print(f"{Style.CYAN}ℹ {msg}{Style.RESET}")


def ok(msg: str):
    print(f"{Style.GREEN}✔ {msg}{Style.RESET}")


def fail(msg: str):
    print(f"{Style.RED}✘ {msg}{Style.RESET}")


# =========================
# Config
# =========================

SHOP_BASE = os.getenv("SHOP_BASE", "http://localhost:8000")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@shopit.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "adminpassword")
DEBUG = os.getenv("DEBUG", "0").strip() in {"1", "true", "True", "YES", "yes"}

# 1x1 transparent PNG
AVATAR = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
INITIAL_STOCK = 10


def debug(msg: str):
    if DEBUG:
        print(f"{Style.GRAY}… {msg}{Style.RESET}")


@dataclass
class TestResult:
    name: str
    success: bool
    details: str = ""
    scenario: str = ""


# =========================
# HTTP helpers
# =========================

def http(method: str, path: str, token: Optional[str] = None, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", 8)
    if token:
        kwargs.setdefault("headers", {})["Authorization"] = f"Bearer {token}"
    debug(f"{method} {path}")
    return requests.request(method, SHOP_BASE + path, **kwargs)


def wait_for_health(timeout: int = 30) -> bool:
    start = time.time()
    while time.time() - start < timeout:
        try:
            if http("GET", "/").status_code == 200:
                ok("shop service is healthy.")
                return True
        except requests.exceptions.RequestException as e:
            debug(f"shop service not ready: {e}")
        time.sleep(1)
    fail(f"shop service did not become healthy in {timeout} seconds.")
    return False


def assert_status(resp: requests.Response, expected: int, ctx: str):
    if resp.status_code != expected:
        raise AssertionError(f"{ctx}: expected HTTP {expected}, got {resp.status_code}, body={resp.text}")


def check(name: str, success: bool, details: str, scenario: str) -> TestResult:
    (ok if success else fail)(f"{name}: {details}")
    return TestResult(name, success, details, scenario)


# =========================
# API calls
# =========================

def register_customer() -> str:
    email = f"e2e-{uuid.uuid4().hex[:8]}@example.com"
    resp = http(
        "POST",
        "/api/v1/auth/register",
        data={"name": "E2E Customer", "email": email, "password": "password123", "avatar": AVATAR},
    )
    assert_status(resp, 200, "register customer")
    info(f"registered {email}")
    return resp.json()["token"]


def login_admin() -> str:
    resp = http("POST", "/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert_status(resp, 200, f"login {ADMIN_EMAIL}")
    return resp.json()["token"]


def create_product(admin_token: str, stock: int) -> Dict[str, Any]:
    data = {
        "name": f"E2E Product {uuid.uuid4().hex[:6]}",
        "price": "2500",
        "description": "created by the e2e checks",
        "category": "Electronics",
        "seller": "E2E",
        "stock": str(stock),
    }
    files = [("images", ("pixel.png", b"\x89PNG\r\n\x1a\n", "image/png"))]
    resp = http("POST", "/api/v1/product/admin/product/new", admin_token, data=data, files=files)
    assert_status(resp, 200, "create product")
    return resp.json()["product"]


def get_product(product_id: str) -> Dict[str, Any]:
    resp = http("GET", f"/api/v1/product/product/{product_id}")
    assert_status(resp, 200, f"GET product {product_id}")
    return resp.json()["product"]


def place_order(token: str, product: Dict[str, Any], quantity: int) -> Dict[str, Any]:
    items_price = product["price"] * quantity
    payload = {
        "orderItems": [
            {"product": product["id"], "name": product["name"], "price": product["price"], "quantity": quantity}
        ],
        "shippingInfo": {
            "address": "1 Test Street",
            "city": "Testville",
            "phoneNo": "5550100",
            "postalCode": "10001",
            "country": "US",
        },
        "paymentInfo": {"id": f"pi_e2e_{uuid.uuid4().hex[:10]}", "status": "succeeded"},
        "itemsPrice": items_price,
        "taxPrice": 0,
        "shippingPrice": 500,
        "totalPrice": items_price + 500,
    }
    resp = http("POST", "/api/v1/orders/new", token, json=payload)
    assert_status(resp, 200, "create order")
    return resp.json()["order"]


def set_status(admin_token: str, order_id: str, status: str) -> requests.Response:
    return http("PUT", f"/api/v1/orders/admin/order/{order_id}", admin_token, data={"status": status})


# =========================
# Scenarios
# =========================

def scenario_fulfilment(customer: str, admin: str) -> List[TestResult]:
    scenario = "Scenario 1 - Order Fulfilment"
    section_title(scenario)
    results: List[TestResult] = []
    try:
        product = create_product(admin, INITIAL_STOCK)
        order = place_order(customer, product, 3)
        results.append(check("Order Created", order["orderStatus"] == "Processing", f"id={order['id']}", scenario))

        resp = set_status(admin, order["id"], "Delivered")
        assert_status(resp, 200, "deliver order")
        delivered = resp.json()["order"]
        results.append(check("Delivered Timestamp", delivered["deliveredAt"] is not None, f"deliveredAt={delivered['deliveredAt']}", scenario))

        stock = get_product(product["id"])["stock"]
        results.append(check("Stock Decremented", stock == INITIAL_STOCK - 3, f"expected {INITIAL_STOCK - 3}, got {stock}", scenario))

        resp = set_status(admin, order["id"], "Shipped")
        results.append(check("Delivered Is Final", resp.status_code == 409, f"HTTP {resp.status_code}", scenario))
    except Exception as e:
        results.append(check("Fulfilment", False, str(e), scenario))
    return results


def scenario_insufficient_stock(customer: str, admin: str) -> List[TestResult]:
    scenario = "Scenario 2 - Insufficient Stock"
    section_title(scenario)
    results: List[TestResult] = []
    try:
        product = create_product(admin, 2)
        order = place_order(customer, product, 5)

        resp = set_status(admin, order["id"], "Shipped")
        results.append(check("Transition Rejected", resp.status_code == 409, f"HTTP {resp.status_code}", scenario))

        stock = get_product(product["id"])["stock"]
        results.append(check("Stock Unchanged", stock == 2, f"expected 2, got {stock}", scenario))

        resp = http("GET", f"/api/v1/orders/{order['id']}", customer)
        status = resp.json()["order"]["orderStatus"]
        results.append(check("Order Still Processing", status == "Processing", f"status={status}", scenario))
    except Exception as e:
        results.append(check("Insufficient Stock", False, str(e), scenario))
    return results


def scenario_reviews(customer: str, admin: str) -> List[TestResult]:
    scenario = "Scenario 3 - Reviews"
    section_title(scenario)
    results: List[TestResult] = []
    try:
        product = create_product(admin, 1)
        resp = http(
            "PUT",
            "/api/v1/product/review",
            customer,
            data={"rating": "4", "comment": "solid", "productId": product["id"]},
        )
        assert_status(resp, 200, "create review")
        review_id = resp.json()["review"]["id"]

        rated = get_product(product["id"])
        results.append(check("Rating Aggregated", (rated["numOfReviews"], rated["ratings"]) == (1, 4), f"{rated['numOfReviews']} review(s), rating {rated['ratings']}", scenario))

        resp = http("DELETE", "/api/v1/product/reviews", customer, params={"productId": product["id"], "id": review_id})
        assert_status(resp, 200, "delete review")
        cleared = get_product(product["id"])
        results.append(check("Rating Reset", (cleared["numOfReviews"], cleared["ratings"]) == (0, 0), f"{cleared['numOfReviews']} review(s), rating {cleared['ratings']}", scenario))
    except Exception as e:
        results.append(check("Reviews", False, str(e), scenario))
    return results


# =========================
# Summary
# =========================

def print_results(results: List[TestResult]):
    print(f"\n{Style.BOLD}================ TEST RESULTS ================ {Style.RESET}")
    passed = 0
    per_scenario: Dict[str, Tuple[int, int]] = {}

    for r in results:
        icon = "✅" if r.success else "❌"
        color = Style.GREEN if r.success else Style.RED
        print(f"{color}{icon} {r.name}{Style.RESET}")
        if r.details:
            print(f"    {Style.DIM}{r.details}{Style.RESET}")
        if r.success:
            passed += 1
        total, good = per_scenario.get(r.scenario, (0, 0))
        per_scenario[r.scenario] = (total + 1, good + int(r.success))

    total = len(results)
    failed = total - passed
    print(f"{Style.BOLD}==============================================={Style.RESET}")
    print(f"Total tests: {total}  |  Passed: {Style.GREEN}{passed}{Style.RESET}  |  Failed: {Style.RED}{failed}{Style.RESET}")
    print(f"{Style.BOLD}===============================================\n{Style.RESET}")

    for scen, (t, p) in per_scenario.items():
        color = Style.GREEN if p == t else (Style.YELLOW if p > 0 else Style.RED)
        print(f"  {color}- {scen}: {p}/{t} passed{Style.RESET}")

    if failed > 0:
        print(f"\n{Style.YELLOW}{Style.BOLD}Troubleshooting hints:{Style.RESET}")
        print(f"{Style.YELLOW}- 401 on admin calls: check ADMIN_EMAIL/ADMIN_PASSWORD and that the user has role admin.{Style.RESET}")
        print(f"{Style.YELLOW}- 502 on product creation: the image store credentials are missing or wrong.{Style.RESET}")
        print()
    return failed


def main():
    banner()
    if not wait_for_health():
        sys.exit(1)

    try:
        customer = register_customer()
        admin = login_admin()
    except (AssertionError, requests.exceptions.RequestException) as e:
        fail(str(e))
        sys.exit(1)

    all_results: List[TestResult] = []
    all_results.extend(scenario_fulfilment(customer, admin))
    all_results.extend(scenario_insufficient_stock(customer, admin))
    all_results.extend(scenario_reviews(customer, admin))

    sys.exit(1 if print_results(all_results) else 0)


if __name__ == "__main__":
    main()
