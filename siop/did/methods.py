"""Selection of the verification method a token's kid refers to."""

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.did.types import DIDDocument, VerificationMethod


def absolute_id(vm: VerificationMethod, doc_id: str) -> str:
    """Verification method id with a fragment-only id resolved against doc_id."""
    if vm.id.startswith("#"):
        return f"{doc_id}{vm.id}"
    return vm.id


def compare_kid_with_id(kid: str, vm: VerificationMethod, doc_id: str) -> bool:
    """Match a kid against a verification method id.

    A kid carrying a DID or starting with ``#`` is compared with the full id;
    a bare kid is compared with the id fragment.
    """
    if "did:" in kid:
        return absolute_id(vm, doc_id) == kid
    if kid.startswith("#"):
        return absolute_id(vm, doc_id) == f"{doc_id}{kid}"
    return vm.fragment == kid


def _matches(kid: str, vm: VerificationMethod, doc_id: str) -> bool:
    jwk_kid = (vm.public_key_jwk or {}).get("kid")
    if jwk_kid:
        return jwk_kid == kid
    return compare_kid_with_id(kid, vm, doc_id)


def get_verification_method(
    kid: str | None, did_doc: DIDDocument
) -> VerificationMethod | None:
    """Return the verification method for kid, or None when none matches.

    Without a kid, a single-method document yields its only method.
    """
    methods = did_doc.verification_method
    if not methods:
        raise DidAuthError(DidAuthErrors.VERIFICATION_METHOD_NOT_SUPPORTED)
    if kid is None:
        return methods[0] if len(methods) == 1 else None
    return next((vm for vm in methods if _matches(kid, vm, did_doc.id)), None)
