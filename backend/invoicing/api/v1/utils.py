"""
Router FastAPI per le utility
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

from fastapi import APIRouter, status

from invoicing.schemas.utils import AmountInWordsRequest, AmountInWordsResponse
from invoicing.services.amount_in_words import to_words

router = APIRouter(
    prefix="/utils",
    tags=["Utility"],
)


@router.post(
    "/amount-in-words",
    name="importo_in_lettere",
    summary="Importo in lettere",
    description="Converte un importo nella sua forma in lettere (inglese).",
    response_model=AmountInWordsResponse,
    status_code=status.HTTP_200_OK,
)
async def amount_in_words(data: AmountInWordsRequest) -> AmountInWordsResponse:
    """
    Esempio: 1234.56 USD -> "One Thousand Two Hundred Thirty-Four Dollars and Fifty-Six Cents"

    Errori:
    - 400 UNSUPPORTED_CURRENCY: valuta non gestita
    """
    words = to_words(
        data.amount,
        currency=data.currency,
        format=data.format.value,
        include_decimals=data.include_decimals,
    )
    return AmountInWordsResponse(
        amount=data.amount,
        currency=data.currency,
        format=data.format,
        words=words,
    )
