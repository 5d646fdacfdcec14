import io
import itertools
import threading
import zipfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import printflow.models  # noqa: F401
from printflow.config import settings
from printflow.db.base import Base
from printflow.db.session import engine as app_engine
from printflow.db.session import get_db
from printflow.dependencies import get_conversion_pipeline, get_job_store
from printflow.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationUnavailableError,
)
from printflow.integrations.notification_client import get_notifier
from printflow.integrations.payment_gateway import (
    GatewayOrder,
    GatewayPayment,
    compute_signature,
    get_payment_gateway,
)
from printflow.integrations.printer_client import (
    PrinterHealth,
    PrintJobResponse,
    get_printer_client,
)
from printflow.integrations.render_service_client import (
    RenderJobStatus,
    get_render_service_client,
)
from printflow.integrations.storage_client import get_object_storage
from printflow.main import app
from printflow.models.order import Order, OrderStatus, OrderType, PaymentStatus
from printflow.observability import metrics_store
from printflow.services.conversion_pipeline import ConversionPipeline
from printflow.services.job_store import get_memory_job_store
from printflow.services.payment_service import PostPaymentEffects
from printflow.services.print_dispatch_service import (
    PrintDispatcher,
    get_printer_rotation,
    get_retry_queue,
)

GATEWAY_SECRET = "gateway-test-secret"
PDF_BYTES = b"%PDF-1.4 test document"


class FakeGateway:
    def __init__(self, secret: str = GATEWAY_SECRET) -> None:
        self.secret = secret
        self.created: list[dict] = []
        self.payments: dict[str, list[GatewayPayment]] = {}
        self.fetch_error: Exception | None = None
        self._ids = itertools.count(1)

    def create_order(self, amount_paise: int, receipt: str, notes: dict) -> GatewayOrder:
        gateway_order = GatewayOrder(id=f"order_{next(self._ids):04d}", amount=amount_paise)
        self.created.append({"id": gateway_order.id, "amount": amount_paise, "receipt": receipt})
        return gateway_order

    def fetch_order_payments(self, gateway_order_id: str) -> list[GatewayPayment]:
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.payments.get(gateway_order_id, []))

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        return compute_signature(self.secret, gateway_order_id, payment_id) == signature

    def sign(self, gateway_order_id: str, payment_id: str) -> str:
        return compute_signature(self.secret, gateway_order_id, payment_id)

    def add_captured_payment(self, gateway_order_id: str, payment_id: str, amount: int) -> None:
        self.payments.setdefault(gateway_order_id, []).append(
            GatewayPayment(
                id=payment_id,
                order_id=gateway_order_id,
                status="captured",
                captured=True,
                amount=amount,
            )
        )


class FakeStorage:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.uploads: list[tuple[str, str]] = []
        self._ids = itertools.count(1)

    def upload_file(self, content: bytes, folder: str, mime_type: str) -> str:
        extension = "pdf" if mime_type == "application/pdf" else "docx"
        url = f"https://storage.test/{folder}/{next(self._ids)}.{extension}"
        self.files[url] = content
        self.uploads.append((folder, url))
        return url

    def fetch(self, url: str) -> bytes:
        if url not in self.files:
            raise IntegrationBadGatewayError("storage", f"Storage download returned 404 for {url}")
        return self.files[url]


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []
        self.succeed = True

    def notify(self, event: str, payload: dict) -> bool:
        self.sent.append((event, payload))
        return self.succeed

    def events(self, name: str) -> list[dict]:
        return [payload for event, payload in self.sent if event == name]


class FakePrinterClient:
    def __init__(self, urls: list[str] | None = None) -> None:
        self.urls = list(urls if urls is not None else ["http://printer-1", "http://printer-2"])
        self.sent = []
        self.failures_remaining = 0
        self.reported_delivery_number: str | None = None
        self.paused: list[str] = []
        self.resumed: list[str] = []

    def url_for_index(self, printer_index: int) -> str:
        if not self.urls:
            raise IntegrationUnavailableError("printer_api", "No printer URLs configured")
        return self.urls[(printer_index - 1) % len(self.urls)]

    def send_print_job(self, request) -> PrintJobResponse:
        self.sent.append(request)
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise IntegrationUnavailableError("printer_api", "Printer API returned 5xx")
        return PrintJobResponse(
            success=True,
            message="queued",
            job_id=f"pj-{len(self.sent)}",
            delivery_number=self.reported_delivery_number,
        )

    def check_health(self, url: str) -> PrinterHealth:
        return PrinterHealth(url=url, online=url.endswith("1"), detail={"status": "ok"})

    def queue_status(self, url: str) -> dict:
        return {"url": url, "pending": 0}

    def pause_queue(self, url: str) -> dict:
        self.paused.append(url)
        return {"paused": True}

    def resume_queue(self, url: str) -> dict:
        self.resumed.append(url)
        return {"paused": False}


class FakeRenderService:
    def __init__(self, configured: bool = False) -> None:
        self._configured = configured
        self.submitted: list[dict] = []
        self.remote_status: dict[str, RenderJobStatus] = {}
        self.submit_error: Exception | None = None
        self.healthy = True

    @property
    def configured(self) -> bool:
        return self._configured

    def submit(self, docx_url: str, order_id: str, callback_url: str) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        job_id = f"render-{len(self.submitted) + 1}"
        self.submitted.append(
            {"job_id": job_id, "docx_url": docx_url, "order_id": order_id, "callback": callback_url}
        )
        return job_id

    def status(self, job_id: str) -> RenderJobStatus:
        if job_id not in self.remote_status:
            raise IntegrationBadGatewayError("render_service", "Render status returned 404")
        return self.remote_status[job_id]

    def health(self) -> bool:
        return self.healthy


class FakeConverter:
    def __init__(self, name: str, result: bytes | None = None, error: Exception | None = None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = 0

    def convert(self, docx_bytes: bytes) -> bytes:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def build_docx(document_xml: str, extra_parts: dict[str, str] | None = None) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        archive.writestr("word/document.xml", document_xml)
        for name, xml in (extra_parts or {}).items():
            archive.writestr(name, xml)
    return buffer.getvalue()


def read_docx_part(docx_bytes: bytes, name: str = "word/document.xml") -> str:
    with zipfile.ZipFile(io.BytesIO(docx_bytes)) as archive:
        return archive.read(name).decode("utf-8")


@pytest.fixture(scope="session", autouse=True)
def enable_testing_mode():
    original = settings.testing
    settings.testing = True
    yield
    settings.testing = original


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=app_engine)
    Base.metadata.create_all(bind=app_engine)
    yield


@pytest.fixture(autouse=True)
def reset_in_memory_state():
    metrics_store.reset()
    get_memory_job_store().reset()
    get_retry_queue().reset()
    get_printer_rotation().reset()
    yield
    get_retry_queue().reset()


@pytest.fixture
def session_factory():
    return sessionmaker(bind=app_engine, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def printer_client():
    return FakePrinterClient()


@pytest.fixture
def render_service():
    return FakeRenderService()


@pytest.fixture
def converters():
    return [FakeConverter("local_cli", result=PDF_BYTES)]


@pytest.fixture
def pipeline(converters, render_service, storage):
    return ConversionPipeline(
        converters=converters,
        render_service=render_service,
        storage=storage,
        job_store=get_job_store(),
        callback_url="http://testserver/webhooks/render",
    )


@pytest.fixture
def client(
    db_session,
    session_factory,
    gateway,
    storage,
    notifier,
    printer_client,
    render_service,
    pipeline,
):
    db_session_lock = threading.Lock()

    def override_get_db():
        if db_session_lock.acquire(blocking=False):
            try:
                yield db_session
            finally:
                db_session_lock.release()
            return

        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_object_storage] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_printer_client] = lambda: printer_client
    app.dependency_overrides[get_render_service_client] = lambda: render_service
    app.dependency_overrides[get_conversion_pipeline] = lambda: pipeline
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {settings.admin_api_token}"}


@pytest.fixture
def cron_headers():
    return {"X-Cron-Secret": settings.cron_secret}


@pytest.fixture
def make_converter():
    return FakeConverter


@pytest.fixture
def docx_factory():
    return build_docx


@pytest.fixture
def read_docx():
    return read_docx_part


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES


@pytest.fixture
def order_factory(db_session):
    counter = itertools.count(1)

    def _make(**overrides) -> Order:
        n = next(counter)
        values = {
            "order_id": f"ORDTEST{n:04d}",
            "order_type": OrderType.FILE,
            "status": OrderStatus.PENDING_PAYMENT,
            "payment_status": PaymentStatus.PENDING,
            "amount": 120.0,
            "razorpay_order_id": f"order_test_{n:04d}",
            "customer_name": "Asha Rao",
            "customer_email": "asha@example.com",
            "customer_phone": "+919800000000",
            "printing_options": {
                "page_size": "A4",
                "color": "bw",
                "sided": "single",
                "copies": 2,
                "page_count": 6,
            },
            "file_url": f"https://storage.test/uploads/{n}.pdf",
        }
        values.update(overrides)
        order = Order(**values)
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def dispatcher(printer_client):
    return PrintDispatcher(printer_client, get_retry_queue(), get_printer_rotation())


@pytest.fixture
def effects(dispatcher, notifier, pipeline):
    return PostPaymentEffects(dispatcher, notifier, pipeline)
