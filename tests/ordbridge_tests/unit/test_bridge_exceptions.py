"""
Tests for the bridge error taxonomy.
"""

import pytest
import requests

from ordbridge.core import bridge_exceptions as errors


CATEGORY_BASES = {
    "invalid_input": errors.InvalidInputError,
    "not_found": errors.NotFoundError,
    "conflict": errors.ConflictError,
    "policy_violation": errors.PolicyViolationError,
    "verification_failure": errors.VerificationFailureError,
}


@pytest.mark.parametrize(
    "exc_cls, category",
    [
        (errors.InvalidHeaderError, "invalid_input"),
        (errors.ProofTooLongError, "invalid_input"),
        (errors.TooManyEffectsError, "invalid_input"),
        (errors.HeaderNotFoundError, "not_found"),
        (errors.UnknownHeaderError, "not_found"),
        (errors.ClaimNotFoundError, "not_found"),
        (errors.HeaderAlreadyExistsError, "conflict"),
        (errors.DuplicateClaimError, "conflict"),
        (errors.AlreadyVerifiedError, "conflict"),
        (errors.NotPendingError, "conflict"),
        (errors.BridgePausedError, "policy_violation"),
        (errors.BelowThresholdError, "policy_violation"),
        (errors.InsufficientConfirmationsError, "policy_violation"),
        (errors.UnauthorizedError, "policy_violation"),
        (errors.InvalidProofOfWorkError, "verification_failure"),
        (errors.ChainLinkageError, "verification_failure"),
        (errors.ProofMismatchError, "verification_failure"),
        (errors.ProofNotReadyError, "verification_failure"),
    ],
)
def test_each_error_belongs_to_exactly_one_category(exc_cls, category):
    exc = exc_cls("boom")
    assert exc.category == category
    matching = [name for name, base in CATEGORY_BASES.items() if isinstance(exc, base)]
    assert matching == [category]
    assert isinstance(exc, errors.BridgeError)


def test_codes_are_unique():
    classes = [
        obj
        for obj in vars(errors).values()
        if isinstance(obj, type) and issubclass(obj, errors.BridgeError) and obj not in CATEGORY_BASES.values()
    ]
    codes = [cls.code for cls in classes]
    assert len(codes) == len(set(codes))


def test_recoverable_defaults_and_override():
    assert errors.BridgePausedError("paused").recoverable is True
    assert errors.InsufficientConfirmationsError("wait").recoverable is True
    assert errors.ProofNotReadyError("wait").recoverable is True
    assert errors.DuplicateClaimError("dup").recoverable is False
    assert errors.DuplicateClaimError("dup", recoverable=True).recoverable is True


def test_is_recoverable_error():
    assert errors.is_recoverable_error(errors.BridgePausedError("paused"))
    assert not errors.is_recoverable_error(errors.InvalidHeaderError("bad"))
    assert errors.is_recoverable_error(ConnectionError())
    assert errors.is_recoverable_error(requests.Timeout("node slow"))
    assert not errors.is_recoverable_error(requests.HTTPError("401"))
    assert not errors.is_recoverable_error(ValueError())


def test_get_error_context():
    exc = errors.ProofMismatchError("mismatch", details={"computed_root": "aa"})
    context = errors.get_error_context(exc)
    assert context == {
        "error_type": "ProofMismatchError",
        "error_message": "mismatch",
        "code": "proof_mismatch",
        "category": "verification_failure",
        "recoverable": False,
        "details": {"computed_root": "aa"},
    }
    plain = errors.get_error_context(KeyError("x"))
    assert plain["error_type"] == "KeyError"
    assert "code" not in plain
