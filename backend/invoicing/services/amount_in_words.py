"""
Conversione importi in lettere
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Funzione pura e deterministica usata in fattura per la dicitura
legale dell'importo (es. "ONE THOUSAND ... DOLLARS ONLY").
Numerazione inglese a scala corta, gruppi di tre cifre fino ai trilioni.
"""

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Union

from invoicing.core.exceptions import BusinessValidationError, UnsupportedCurrencyError

__all__ = ["CURRENCY_UNITS", "SUPPORTED_CURRENCIES", "number_to_words", "to_words"]


_ONES = ("", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine")
_TEENS = (
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen",
    "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen",
)
_TENS = ("", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety")
_SCALES = ("", "Thousand", "Million", "Billion", "Trillion")

# Primo intero non esprimibile con le scale disponibili
WORDS_LIMIT = 1000 ** len(_SCALES)

# valuta -> (unità, unità plurale, centesimo, centesimi)
CURRENCY_UNITS: dict[str, tuple[str, str, str, str]] = {
    "USD": ("Dollar", "Dollars", "Cent", "Cents"),
    "EUR": ("Euro", "Euros", "Cent", "Cents"),
    "GBP": ("Pound", "Pounds", "Penny", "Pence"),
    "INR": ("Rupee", "Rupees", "Paisa", "Paise"),
    "JPY": ("Yen", "Yen", "Sen", "Sen"),
    "CAD": ("Dollar", "Dollars", "Cent", "Cents"),
    "AUD": ("Dollar", "Dollars", "Cent", "Cents"),
}

SUPPORTED_CURRENCIES = tuple(CURRENCY_UNITS)


def _hundreds_to_words(num: int) -> str:
    """Converte un gruppo 0-999."""
    parts = []
    if num >= 100:
        parts.append(f"{_ONES[num // 100]} Hundred")
        num %= 100

    if num >= 20:
        word = _TENS[num // 10]
        if num % 10:
            word = f"{word}-{_ONES[num % 10]}"
        parts.append(word)
    elif num >= 10:
        parts.append(_TEENS[num - 10])
    elif num > 0:
        parts.append(_ONES[num])

    return " ".join(parts)


def number_to_words(num: int) -> str:
    """
    Converte un intero non negativo in parole.

    Raises:
        ValueError: numero negativo o oltre la scala dei trilioni
    """
    if num < 0:
        raise ValueError("number_to_words accetta solo interi non negativi")
    if num == 0:
        return "Zero"

    groups = []
    scale = 0
    while num > 0:
        if scale >= len(_SCALES):
            raise ValueError("Importo troppo grande per la conversione in lettere")
        chunk = num % 1000
        if chunk:
            suffix = _SCALES[scale]
            groups.append(f"{_hundreds_to_words(chunk)} {suffix}".strip())
        num //= 1000
        scale += 1

    return " ".join(reversed(groups))


def to_words(
    amount: Union[Decimal, int, float, str],
    currency: str = "USD",
    format: str = "standard",
    include_decimals: bool = True,
) -> str:
    """
    Converte un importo monetario in lettere.

    Args:
        amount: Importo (anche negativo)
        currency: Codice valuta (USD, EUR, GBP, INR, JPY, CAD, AUD)
        format: "legal" (maiuscolo + ONLY), "formal" (solo iniziale maiuscola + only)
            o "standard" (invariato)
        include_decimals: Se True aggiunge i centesimi quando diversi da zero

    Returns:
        str: Importo in lettere

    Raises:
        UnsupportedCurrencyError: valuta non presente in CURRENCY_UNITS
        BusinessValidationError: importo non finito o con parte intera oltre i trilioni

    Example:
        >>> to_words(Decimal("1234.56"), "USD", "legal")
        'ONE THOUSAND TWO HUNDRED THIRTY-FOUR DOLLARS AND FIFTY-SIX CENTS ONLY'
    """
    code = (currency or "").upper()
    units = CURRENCY_UNITS.get(code)
    if units is None:
        raise UnsupportedCurrencyError(f"Valuta {currency} non supportata")
    main_unit, main_plural, cent_unit, cent_plural = units

    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    absolute = abs(value)
    if not absolute.is_finite() or absolute >= WORDS_LIMIT:
        raise BusinessValidationError(
            f"Importo troppo grande per la conversione in lettere: {amount}",
            error_code="AMOUNT_TOO_LARGE",
            extra={"max_amount": str(WORDS_LIMIT - 1)},
        )
    integer_part = int(absolute.to_integral_value(rounding=ROUND_FLOOR))
    cents = int(((absolute - integer_part) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    result = f"{number_to_words(integer_part)} {main_unit if integer_part == 1 else main_plural}"

    if include_decimals and cents > 0:
        result += f" and {number_to_words(cents)} {cent_unit if cents == 1 else cent_plural}"

    if format == "legal":
        result = result.upper() + " ONLY"
    elif format == "formal":
        result = result[:1].upper() + result[1:].lower() + " only"

    if value < 0:
        result = "Negative " + result

    return result
