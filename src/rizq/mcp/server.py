"""
MCP-style verb router for Rizq agents.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from ..config import BANK_PARTNERS
from ..controls import BankOffer, CreditLimitControls, Customer
from ..evaluation import evaluate_bids_safely
from ..tie_breaking import resolve_tie_breaking

logger = logging.getLogger(__name__)

router = APIRouter()


class MCPRequest(BaseModel):
    """MCP request model."""

    verb: str
    args: Dict[str, Any] = {}


class MCPResponse(BaseModel):
    """MCP response model."""

    ok: bool
    data: Any = None
    error: Any = None


@router.post("/mcp/invoke", response_model=MCPResponse)
async def invoke_mcp_verb(request: MCPRequest) -> MCPResponse:
    """
    Handle MCP protocol requests.

    Supported verbs:
    - getStatus: Returns agent status
    - listBankPartners: Returns the bank partners taking part in bidding
    - evaluateBids: Evaluates welcome-balance bids for args.customer
    - resolveTieBreaking: Resolves the winner among args.offers for args.customer_id
    - validateAmount: Validates args.amount against args.monthly_income and args.card_product
    """
    try:
        if request.verb == "getStatus":
            return MCPResponse(ok=True, data={"agent": "rizq", "status": "active"})
        elif request.verb == "listBankPartners":
            return MCPResponse(
                ok=True,
                data={
                    "agent": "rizq",
                    "bank_partners": [bank.model_dump() for bank in BANK_PARTNERS],
                },
            )
        elif request.verb == "evaluateBids":
            customer = Customer(**request.args["customer"])
            response = evaluate_bids_safely(customer)
            return MCPResponse(ok=True, data=response.model_dump(mode="json"))
        elif request.verb == "resolveTieBreaking":
            offers = [BankOffer(**offer) for offer in request.args.get("offers", [])]
            result = resolve_tie_breaking(
                offers,
                request.args["customer_id"],
                request.args.get("cobrand_partner"),
            )
            return MCPResponse(ok=True, data=result.model_dump(mode="json"))
        elif request.verb == "validateAmount":
            result = CreditLimitControls.validate_amount(
                float(request.args["amount"]),
                float(request.args["monthly_income"]),
                request.args["card_product"],
            )
            return MCPResponse(ok=True, data=result.model_dump())
        else:
            return MCPResponse(ok=False, error=f"Unsupported verb: {request.verb}")
    except KeyError as e:
        return MCPResponse(ok=False, error=f"Missing argument: {e.args[0]}")
    except Exception as e:
        logger.warning(f"MCP verb {request.verb} failed: {e}")
        return MCPResponse(ok=False, error=str(e))
