from datetime import date, timedelta

from fastapi import status


def seed(client, headers):
    rows = [
        ("white-oil", {"kind": "sale", "clientName": "Ali", "quantity": 10, "rate": 10}),
        ("white-oil", {"kind": "purchase", "clientName": "Refinery", "quantity": 4, "rate": 10}),
        ("diesel", {"kind": "sale", "clientName": "Ali", "quantity": 2, "rate": 100, "tendered": 200}),
    ]
    for product_type, body in rows:
        response = client.post(f"/api/v1/products/{product_type}", headers=headers, json=body)
        assert response.status_code == status.HTTP_201_CREATED


def test_sales_report(test_client, admin_headers):
    seed(test_client, admin_headers)

    response = test_client.get("/api/v1/reports/sales", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["kind"] == "sale"
    assert data["totalAmount"] == 300.0
    assert data["totalCount"] == 2
    assert len(data["monthlyData"]) == 1
    assert data["monthlyData"][0]["amount"] == 300.0
    assert {b["label"]: b["amount"] for b in data["productBreakdown"]} == {
        "White Oil": 100.0,
        "Diesel": 200.0,
    }
    assert data["failedProductTypes"] == []


def test_purchases_report_with_date_range(test_client, admin_headers):
    seed(test_client, admin_headers)
    today = date.today()

    current = test_client.get(
        "/api/v1/reports/purchases",
        headers=admin_headers,
        params={"startDate": (today - timedelta(days=1)).isoformat(), "endDate": (today + timedelta(days=1)).isoformat()},
    ).json()["data"]
    past = test_client.get(
        "/api/v1/reports/purchases",
        headers=admin_headers,
        params={"startDate": "2001-01-01", "endDate": "2001-12-31"},
    ).json()["data"]

    assert current["totalAmount"] == 40.0
    assert current["totalCount"] == 1
    assert past["totalAmount"] == 0.0
    assert past["monthlyData"] == []


def test_product_report_pdf(test_client, admin_headers):
    seed(test_client, admin_headers)

    response = test_client.get("/api/v1/reports/products/white-oil/pdf", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "application/pdf"
    assert "white-oil-report.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


def test_product_report_pdf_without_records(test_client, admin_headers):
    response = test_client.get("/api/v1/reports/products/white-oil/pdf", headers=admin_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["success"] is False
