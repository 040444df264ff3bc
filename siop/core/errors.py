"""Error taxonomy for DID Auth verification."""

from enum import StrEnum


class DidAuthErrors(StrEnum):
    """Named failure reasons. Values are the caller-visible messages."""

    BAD_PARAMS = "Wrong parameters provided."
    MALFORMED_SIGNATURE_RESPONSE = "Response format is malformed"
    NO_ALG_SUPPORTED = "Algorithm not supported."
    NO_KEY_CURVE_SUPPORTED = "Key Curve not supported."
    ERROR_VERIFYING_SIGNATURE = "Error verifying the DID Auth Token signature."
    ERROR_VALIDATING_NONCE = "Error validating nonce."
    NO_AUDIENCE = "No audience found in JWT payload"
    INVALID_AUDIENCE = "Audience is invalid. Should be a string value."
    VERIFY_BAD_PARAMETERS = "Verify bad parameters"
    VERIFICATION_METHOD_NOT_SUPPORTED = "Verification method not supported"
    ERROR_RETRIEVING_VERIFICATION_METHOD = (
        "Error retrieving verification method from did document"
    )
    ERROR_RETRIEVING_DID_DOCUMENT = "Error retrieving did document"
    NO_ISS_DID = "Token does not have a iss DID"
    BAD_INTERNAL_VERIFICATION_PARAMS = (
        "Error: One of the either didUrlResolver or both registry "
        "and rpcUrl must be set"
    )
    ERROR_ON_POST_CALL = "Error on POST call: "
    NO_PUBLIC_KEY = "No public key found!"
    JWKS_URI_DID_MISMATCH = "Registration jwks_uri does not reference the issuer DID."


class DidAuthError(Exception):
    """Verification failure carrying one of the named reasons."""

    def __init__(self, reason: DidAuthErrors, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        message = reason.value
        if detail:
            sep = "" if message.endswith(" ") else " "
            message = f"{message}{sep}{detail}"
        super().__init__(message)
