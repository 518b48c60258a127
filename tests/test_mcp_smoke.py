import pytest

from fastapi.testclient import TestClient
from fastapi import FastAPI
from rizq.mcp.server import router as mcp_router


# Create a test FastAPI app and include the MCP router
@pytest.fixture(scope="module")
def client():
    app = FastAPI()
    app.include_router(mcp_router)
    with TestClient(app) as c:
        yield c


def test_mcp_get_status(client):
    """Test MCP getStatus verb returns agent status."""
    response = client.post("/mcp/invoke", json={"verb": "getStatus", "args": {}})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["data"]["agent"] == "rizq"
    assert data["data"]["status"] == "active"


def test_mcp_list_bank_partners(client):
    """Test MCP listBankPartners verb returns every partner."""
    response = client.post("/mcp/invoke", json={"verb": "listBankPartners", "args": {}})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True

    partners = data["data"]["bank_partners"]
    assert len(partners) == 6
    assert partners[0]["id"] == "snb"
    assert partners[4]["name"] == "Samba Financial Group"


def test_mcp_evaluate_bids(client):
    """Test MCP evaluateBids verb for a customer below every bank's floor."""
    customer = {
        "id": "cust_550",
        "age": 40,
        "income": 9000,
        "credit_score": 550,
        "debt_burden_ratio": 0.3,
        "location": "Dammam",
        "nationality": "Saudi Arabian",
        "applied_card": "Visa Platinum",
    }
    response = client.post("/mcp/invoke", json={"verb": "evaluateBids", "args": {"customer": customer}})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["data"]["winning_bid"] is None


def test_mcp_resolve_tie_breaking(client):
    """Test MCP resolveTieBreaking verb applies the retailer preference."""
    response = client.post(
        "/mcp/invoke",
        json={
            "verb": "resolveTieBreaking",
            "args": {
                "customer_id": "cust_001",
                "cobrand_partner": "jarir",
                "offers": [
                    {"bank_name": "ANB", "amount": 20000},
                    {"bank_name": "SNB", "amount": 20000},
                ],
            },
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["data"]["winner"] == "SNB"
    assert data["data"]["resolved_by"] == "retailer_preference"


def test_mcp_validate_amount(client):
    """Test MCP validateAmount verb."""
    response = client.post(
        "/mcp/invoke",
        json={
            "verb": "validateAmount",
            "args": {"amount": 50000, "monthly_income": 10000, "card_product": "Visa Platinum"},
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["data"]["risk_level"] == "outlier"


def test_mcp_missing_argument(client):
    """Test MCP verb without required arguments returns error."""
    response = client.post("/mcp/invoke", json={"verb": "validateAmount", "args": {"amount": 100}})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is False
    assert "Missing argument" in data["error"]


def test_mcp_unsupported_verb(client):
    """Test MCP with unsupported verb returns error."""
    response = client.post("/mcp/invoke", json={"verb": "unsupportedVerb", "args": {}})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is False
    assert "Unsupported verb" in data["error"]


def test_mcp_missing_verb(client):
    """Test MCP with missing verb returns validation error."""
    response = client.post("/mcp/invoke", json={"args": {}})
    assert response.status_code == 422  # FastAPI validation error
    data = response.json()
    assert "detail" in data
    assert "Field required" in data["detail"][0]["msg"]
