"""
Eccezioni Custom per l'applicazione.
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori. Il mapping verso i codici HTTP
avviene in un unico handler registrato in main.py.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole di business logic (gestiti dal nostro handler → 422)
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "InvalidOperationError",
    "InvalidAmountError",
    "AmountExceedsDueError",
    "UnsupportedCurrencyError",
    "ConflictError",
    "AuthenticationError",
    "EmailNotConfiguredError",
    "EmailDeliveryError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    # Default values - overridden in subclasses
    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Errore interno del server"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato (default: quello di classe)
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
        self.detail = detail if detail is not None else self.default_detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(self.detail)


class NotFoundError(AppException):
    """
    Eccezione sollevata quando una risorsa non viene trovata.

    Utilizzata anche per risorse di un altro tenant: non si rivela
    mai l'esistenza di dati fuori dal proprio tenant.
    """

    status_code: int = 404
    error_code: str = "NOT_FOUND"
    default_detail: str = "Risorsa non trovata"


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "Stato fattura non valido"
        - "La data di scadenza supera il limite del tenant"
    """

    status_code: int = 422
    error_code: str = "VALIDATION_ERROR"
    default_detail: str = "Validazione dati fallita"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class InvalidOperationError(AppException):
    """
    Richiesta legittima ma non ammessa nello stato corrente della risorsa.

    Esempio: modifica di una fattura già pagata. Il messaggio è distinto
    da NotFoundError così il client sa che la risorsa esiste ma è bloccata.
    """

    status_code: int = 400
    error_code: str = "INVALID_OPERATION"
    default_detail: str = "Operazione non consentita"


class InvalidAmountError(AppException):
    """Importo di pagamento nullo o negativo."""

    status_code: int = 400
    error_code: str = "INVALID_AMOUNT"
    default_detail: str = "L'importo del pagamento deve essere positivo"


class AmountExceedsDueError(AppException):
    """Importo di pagamento superiore al residuo della fattura."""

    status_code: int = 400
    error_code: str = "AMOUNT_EXCEEDS_DUE"
    default_detail: str = "L'importo del pagamento supera il residuo da pagare"


class UnsupportedCurrencyError(AppException):
    """Valuta non supportata dalla conversione importo in lettere."""

    status_code: int = 400
    error_code: str = "UNSUPPORTED_CURRENCY"
    default_detail: str = "Valuta non supportata"


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di stato.

    Utilizzata quando un'operazione non può essere eseguita
    a causa di un vincolo di unicità o di una scrittura concorrente
    (es. numero fattura già assegnato).
    """

    status_code: int = 409
    error_code: str = "CONFLICT"
    default_detail: str = "Conflitto di stato"


class AuthenticationError(AppException):
    """
    Contesto di richiesta mancante o non valido.

    Sollevata quando gli header di tenant/utente sono assenti o malformati.
    """

    status_code: int = 401
    error_code: str = "UNAUTHORIZED"
    default_detail: str = "Contesto tenant non fornito"


class EmailNotConfiguredError(AppException):
    """Invio email richiesto ma nessun provider configurato (manca l'API key)."""

    status_code: int = 503
    error_code: str = "EMAIL_NOT_CONFIGURED"
    default_detail: str = "Servizio email non configurato"


class EmailDeliveryError(AppException):
    """
    Il provider email ha rifiutato il messaggio o non ha risposto.

    La fattura non viene marcata come inviata.
    """

    status_code: int = 502
    error_code: str = "EMAIL_SEND_FAILED"
    default_detail: str = "Invio email non riuscito"
