import pytest

TEMPLATE_URL = "https://storage.test/templates/certificate.docx"
TEMPLATE_XML = (
    '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
    "<w:body><w:p><w:r><w:t>Awarded to {{name}} on {{date}}</w:t></w:r></w:p></w:body>"
    "</w:document>"
)


def file_order_payload(**overrides) -> dict:
    payload = {
        "order_type": "file",
        "customer": {"name": "Asha Rao", "email": "asha@example.com", "phone": "+919800000000"},
        "printing_options": {"page_size": "A4", "color": "bw", "copies": 2, "page_count": 2},
        "file_url": "https://storage.test/uploads/report.pdf",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_file_order(client):
    def _create(**overrides) -> dict:
        response = client.post("/api/v1/orders", json=file_order_payload(**overrides))
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def template_in_storage(storage, docx_factory):
    storage.files[TEMPLATE_URL] = docx_factory(TEMPLATE_XML)
    return TEMPLATE_URL


@pytest.fixture
def create_template_order(client, template_in_storage):
    def _create(price: float = 40.0, **fields) -> dict:
        response = client.post(
            "/api/v1/orders",
            json={
                "order_type": "template",
                "customer": {"name": "Asha Rao", "email": "asha@example.com"},
                "printing_options": {"page_count": 1, "copies": 1},
                "template": {
                    "template_id": "tpl-certificate",
                    "template_name": "Certificate",
                    "template_url": template_in_storage,
                    "fields": fields or {"name": "Asha", "date": "19 Oct 2026"},
                    "price": price,
                    "creator_id": "creator-7" if price else None,
                },
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def verify(client, gateway):
    def _verify(gateway_order_id: str, payment_id: str = "pay_001", signature: str | None = None):
        return client.post(
            "/payment/verify",
            json={
                "razorpay_order_id": gateway_order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature or gateway.sign(gateway_order_id, payment_id),
            },
        )

    return _verify
