"""
Tests for move_explainer/explanation_service.py

Covers:
  - CreateExplanationRequest validation
  - get_by_id NotFound sharpening
  - update_content keeps identity fields
  - delete semantics
  - Optional ownership enforcement
"""

from unittest.mock import MagicMock

import pytest

from move_explainer.errors import (
    InvalidAddressError,
    MalformedIdError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)
from move_explainer.explanation_service import ExplanationService
from move_explainer.explanation_store import ExplanationStore, new_explanation_id
from move_explainer.models import CreateExplanationRequest, UpdateAck

PACKAGE = "0x" + "2" * 64
OWNER = "0x" + "c" * 64
OTHER_OWNER = "0x" + "d" * 64


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store(tmp_path):
    s = ExplanationStore(tmp_path / "explanations.db").connect()
    yield s
    s.close()


@pytest.fixture
def service(store):
    return ExplanationService(store)


@pytest.fixture
def strict_service(store):
    return ExplanationService(store, enforce_ownership=True)


def _payload(**overrides):
    payload = {
        "package_id": PACKAGE,
        "module_name": "vault",
        "function_name": "withdraw",
        "owner": OWNER,
        "content": "Withdraws from the vault.",
    }
    payload.update(overrides)
    return payload


def _create(service, **overrides):
    request = CreateExplanationRequest.from_dict(_payload(**overrides))
    return service.create(request).inserted_id


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------

class TestCreateRequest:
    def test_valid_payload(self):
        req = CreateExplanationRequest.from_dict(_payload())
        assert req.package_id.as_str() == PACKAGE
        assert req.owner.as_str() == OWNER
        assert req.module_name == "vault"

    def test_not_a_dict(self):
        with pytest.raises(ValidationError):
            CreateExplanationRequest.from_dict(None)

    @pytest.mark.parametrize("missing", [
        "package_id", "module_name", "function_name", "owner", "content",
    ])
    def test_missing_field(self, missing):
        payload = _payload()
        del payload[missing]
        with pytest.raises(ValidationError) as exc:
            CreateExplanationRequest.from_dict(payload)
        assert exc.value.field == missing

    def test_invalid_package_id(self):
        with pytest.raises(InvalidAddressError) as exc:
            CreateExplanationRequest.from_dict(_payload(package_id="0x" + "a" * 63))
        assert exc.value.field == "package_id"

    def test_non_string_owner(self):
        with pytest.raises(ValidationError):
            CreateExplanationRequest.from_dict(_payload(owner=42))

    def test_empty_content(self):
        with pytest.raises(ValidationError) as exc:
            CreateExplanationRequest.from_dict(_payload(content=""))
        assert exc.value.field == "content"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestReads:
    def test_create_then_get(self, service):
        explanation_id = _create(service)
        record = service.get_by_id(explanation_id)
        assert record.to_dict()["package_id"] == PACKAGE
        assert record.module_name == "vault"
        assert record.function_name == "withdraw"
        assert record.owner.as_str() == OWNER
        assert record.content == "Withdraws from the vault."

    def test_get_never_created(self, service):
        with pytest.raises(NotFoundError):
            service.get_by_id(new_explanation_id())

    def test_get_malformed_id(self, service):
        with pytest.raises(MalformedIdError):
            service.get_by_id("12345")

    def test_get_by_owner(self, service):
        a = _create(service)
        b = _create(service, function_name="deposit")
        _create(service, owner=OTHER_OWNER)
        records = service.get_by_owner(OWNER)
        assert sorted(r.id for r in records) == sorted([a, b])

    def test_get_by_function(self, service):
        a = _create(service)
        _create(service, function_name="deposit")
        records = service.get_by_function(PACKAGE, "vault", "withdraw")
        assert [r.id for r in records] == [a]

    def test_get_by_function_invalid_package(self, service):
        with pytest.raises(InvalidAddressError):
            service.get_by_function("0x12", "vault", "withdraw")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

class TestUpdateContent:
    def test_only_content_changes(self, service):
        explanation_id = _create(service)
        before = service.get_by_id(explanation_id)
        ack = service.update_content(explanation_id, "Now with fees.")
        after = service.get_by_id(explanation_id)

        assert ack.modified_count == 1
        assert after.content == "Now with fees."
        assert (after.package_id, after.module_name, after.function_name, after.owner) == (
            before.package_id, before.module_name, before.function_name, before.owner
        )

    def test_missing_record(self, service):
        with pytest.raises(NotFoundError):
            service.update_content(new_explanation_id(), "x")

    def test_empty_content_rejected_before_store(self):
        store = MagicMock()
        service = ExplanationService(store)
        with pytest.raises(ValidationError):
            service.update_content(new_explanation_id(), "")
        store.update_content.assert_not_called()

    def test_uses_single_conditional_update(self):
        store = MagicMock()
        store.update_content.return_value = UpdateAck(matched_count=1, modified_count=1)
        service = ExplanationService(store)
        explanation_id = new_explanation_id()
        service.update_content(explanation_id, "text")
        store.update_content.assert_called_once_with(explanation_id, "text", owner=None)
        store.find_by_id.assert_not_called()


class TestDelete:
    def test_delete_then_get(self, service):
        explanation_id = _create(service)
        ack = service.delete(explanation_id)
        assert ack.deleted_count == 1
        with pytest.raises(NotFoundError):
            service.get_by_id(explanation_id)

    def test_delete_twice(self, service):
        explanation_id = _create(service)
        service.delete(explanation_id)
        with pytest.raises(NotFoundError):
            service.delete(explanation_id)

    def test_delete_ignores_caller_when_not_enforced(self, service):
        explanation_id = _create(service)
        assert service.delete(explanation_id, caller=OTHER_OWNER).deleted_count == 1


# ---------------------------------------------------------------------------
# Ownership enforcement
# ---------------------------------------------------------------------------

class TestOwnershipEnforced:
    def test_owner_can_update(self, strict_service):
        explanation_id = _create(strict_service)
        ack = strict_service.update_content(explanation_id, "mine", caller=OWNER)
        assert ack.modified_count == 1

    def test_other_caller_cannot_update(self, strict_service):
        explanation_id = _create(strict_service)
        with pytest.raises(OwnershipError):
            strict_service.update_content(explanation_id, "theirs", caller=OTHER_OWNER)
        assert strict_service.get_by_id(explanation_id).content == "Withdraws from the vault."

    def test_caller_required(self, strict_service):
        explanation_id = _create(strict_service)
        with pytest.raises(OwnershipError):
            strict_service.delete(explanation_id)

    def test_invalid_caller_address(self, strict_service):
        explanation_id = _create(strict_service)
        with pytest.raises(InvalidAddressError):
            strict_service.delete(explanation_id, caller="0xnope")

    def test_missing_record_still_not_found(self, strict_service):
        with pytest.raises(NotFoundError):
            strict_service.delete(new_explanation_id(), caller=OWNER)

    def test_other_caller_cannot_delete(self, strict_service):
        explanation_id = _create(strict_service)
        with pytest.raises(OwnershipError):
            strict_service.delete(explanation_id, caller=OTHER_OWNER)
        assert strict_service.get_by_id(explanation_id) is not None
