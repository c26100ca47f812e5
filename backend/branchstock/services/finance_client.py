"""
Finance collaborator client.
Posts expense transactions for stock losses recorded by adjustments.
"""
import logging
from decimal import Decimal
from typing import Dict, Optional

import requests

from branchstock.config import settings
from branchstock.exceptions import FinanceError

logger = logging.getLogger(__name__)


class FinanceClient:
    """Thin HTTP client for the finance service's transactions endpoint"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.FINANCE_API_URL).rstrip("/")
        self.token = token if token is not None else settings.FINANCE_API_TOKEN
        self.timeout = timeout if timeout is not None else settings.FINANCE_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def post_expense(
        self,
        amount: Decimal,
        branch_id,
        reference_id,
        description: str,
        payment_method: Optional[str] = None,
        reference: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Dict:
        """
        Create an expense transaction.

        Returns the finance service's transaction document. Raises
        FinanceError on any transport or HTTP failure.
        """
        if not self.configured:
            raise FinanceError("Finance service is not configured (FINANCE_API_URL is empty)")

        url = f"{self.base_url}/transactions"
        payload = {
            "type": "expense",
            "category": category or settings.FINANCE_EXPENSE_CATEGORY,
            "amount": str(amount),
            "branchId": str(branch_id),
            "referenceModel": "Adjustment",
            "referenceId": str(reference_id),
            "description": description,
            "method": payment_method or "cash",
            "paymentReference": reference,
        }
        try:
            response = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FinanceError(
                f"Finance service rejected the expense (HTTP {status})",
                {"status": status, "url": url},
            ) from e
        except requests.exceptions.RequestException as e:
            raise FinanceError(f"Finance service unreachable: {e}", {"url": url}) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        # Accept both a bare document and the {success, data} envelope
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        logger.info("Posted expense %s for adjustment %s", amount, reference_id)
        return body if isinstance(body, dict) else {}


def transaction_id(document: Dict) -> Optional[str]:
    """Id of a finance transaction document, whichever key the service uses."""
    value = document.get("id") or document.get("_id")
    return str(value) if value else None
