"""Domain errors raised by services and rendered by the API exception handlers."""


class NosLimitesError(Exception):
    """Base class for recoverable errors surfaced at the API boundary."""

    kind = "error"
    status_code = 400
    default_message = "Requête invalide."

    def __init__(self, message: str = None, status_code: int = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.message}


class Unauthenticated(NosLimitesError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Authentification requise. Veuillez vous connecter."


class Forbidden(NosLimitesError):
    kind = "forbidden"
    status_code = 403
    default_message = "Accès interdit."


class NotFound(NosLimitesError):
    kind = "not_found"
    status_code = 404
    default_message = "Ressource non trouvée."


class TokenAlreadyUsed(NosLimitesError):
    kind = "already_used"
    status_code = 400
    default_message = "Ce lien magique a déjà été utilisé."


class TokenExpired(NosLimitesError):
    kind = "expired"
    status_code = 400
    default_message = "Ce lien a expiré. Veuillez en demander un nouveau."


class InvalidOrRevoked(NosLimitesError):
    kind = "invalid_or_revoked"
    status_code = 401
    default_message = "Appareil invalide ou révoqué."


class Conflict(NosLimitesError):
    kind = "conflict"
    status_code = 409
    default_message = "Conflit avec l'état actuel de la ressource."


class SelfInvitation(NosLimitesError):
    kind = "self_invitation"
    status_code = 400
    default_message = "Vous ne pouvez pas accepter votre propre invitation."


class Blocked(NosLimitesError):
    kind = "blocked"
    status_code = 403
    default_message = "Cette relation n'est plus possible."


class ValidationError(NosLimitesError):
    kind = "validation_error"
    status_code = 422
    default_message = "Données invalides."


class RateLimited(NosLimitesError):
    kind = "rate_limited"
    status_code = 429
    default_message = "Trop de demandes. Veuillez réessayer plus tard."
