"""
Shared pytest fixtures for the Orçamentos test suite.

Every test runs against an isolated tmp data/output directory and a logo
path that does not exist, so nothing touches the real data/ folder.
"""
import io
import os
import sys
import base64
import pytest

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)


# ── Temp data directory (per-test isolation) ──────────────────────────────────

@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path, monkeypatch):
    """Redirect data/output/log dirs and the logo to an isolated tmp directory."""
    data = str(tmp_path / "data")
    output = str(tmp_path / "output")
    os.makedirs(data, exist_ok=True)
    os.makedirs(output, exist_ok=True)

    from orcamento.core import paths
    monkeypatch.setattr(paths, "DATA_DIR", data)
    monkeypatch.setattr(paths, "OUTPUT_DIR", output)
    monkeypatch.setattr(paths, "LOG_DIR", os.path.join(data, "logs"))
    monkeypatch.setattr(paths, "LOGO_SOURCE", str(tmp_path / "missing-logo.png"))

    for name in list(os.environ):
        if name.startswith("ORCAMENTO_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISABLE_RATE_LIMIT", "true")
    return data


@pytest.fixture
def output_dir(temp_data_dir):
    from orcamento.core import paths
    return paths.OUTPUT_DIR


# ── Sample data factories ─────────────────────────────────────────────────────

@pytest.fixture
def sample_payload():
    """Complete quote form payload (camelCase, as the API receives it)."""
    return {
        "serviceOrder": "00001",
        "date": "19/10/2026",
        "companyWhatsapp": "19993088395",
        "clientName": "Maria da Silva",
        "clientPhone": "19987654321",
        "equipmentType": "Notebook",
        "equipmentModel": "Dell Inspiron 15 3000",
        "equipmentAccessories": "Carregador",
        "equipmentPassword": "1234",
        "diagnostics": ["Não liga", "Tela com manchas"],
        "services": [
            {"name": "Troca do conector de carga", "price": 150.00},
            {"name": "Limpeza interna", "price": 75.50},
        ],
        "technicianName": "ALEXANDRE FREITAS",
    }


@pytest.fixture
def sample_record(sample_payload):
    from orcamento.forms.quote_record import QuoteRecord
    return QuoteRecord.from_dict(sample_payload)


@pytest.fixture
def make_record(sample_payload):
    """Factory: sample record with some keys overridden."""
    from orcamento.forms.quote_record import QuoteRecord

    def _make(**overrides):
        data = dict(sample_payload)
        data.update(overrides)
        return QuoteRecord.from_dict(data)
    return _make


@pytest.fixture
def logo_file(tmp_path):
    """Small valid PNG written with Pillow."""
    from PIL import Image
    path = tmp_path / "logo.png"
    Image.new("RGB", (220, 140), (29, 78, 216)).save(str(path), "PNG")
    return str(path)


@pytest.fixture
def logo_bytes(logo_file):
    with open(logo_file, "rb") as f:
        return f.read()


# ── Flask test client ─────────────────────────────────────────────────────────

def _basic_auth_header(user="tecnico", pw="senha123"):
    creds = base64.b64encode(f"{user}:{pw}".encode()).decode()
    return {"Authorization": f"Basic {creds}"}


class AuthenticatedClient:
    """Wraps Flask test client to add Basic Auth headers to every request."""
    def __init__(self, client, headers):
        self._client = client
        self._headers = headers

    def get(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.get(*args, **kwargs)

    def post(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.post(*args, **kwargs)

    def put(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.put(*args, **kwargs)

    def delete(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.delete(*args, **kwargs)


@pytest.fixture
def app(temp_data_dir, output_dir, monkeypatch):
    """Flask app on a FileStorage in the tmp data dir, Basic Auth enabled."""
    monkeypatch.setenv("ORCAMENTO_USER", "tecnico")
    monkeypatch.setenv("ORCAMENTO_PASS", "senha123")

    from app import create_app
    from orcamento.core import paths
    from orcamento.core.storage import FileStorage

    return create_app({
        "TESTING": True,
        "DATA_DIR": temp_data_dir,
        "LOGO_SOURCE": paths.LOGO_SOURCE,
        "STORAGE": FileStorage(temp_data_dir),
    })


@pytest.fixture
def client(app):
    """Authenticated Flask test client (HTTP Basic Auth on every request)."""
    with app.test_client() as c:
        yield AuthenticatedClient(c, _basic_auth_header())


@pytest.fixture
def anon_client(app):
    """Unauthenticated test client."""
    with app.test_client() as c:
        yield c


# ── PDF helpers ───────────────────────────────────────────────────────────────

def _pdf_text(pdf_bytes: bytes) -> str:
    import pdfplumber
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        return "\n".join((page.extract_text() or "") for page in pdf.pages)


def _pdf_page_count(pdf_bytes: bytes) -> int:
    from pypdf import PdfReader
    return len(PdfReader(io.BytesIO(pdf_bytes)).pages)


@pytest.fixture
def pdf_text():
    """Extract all page text from PDF bytes, pages joined by newlines."""
    return _pdf_text


@pytest.fixture
def pdf_page_count():
    return _pdf_page_count
