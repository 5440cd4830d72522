"""
Explanation service: existence and ownership rules on top of the store.

The store answers "absent" softly (``None``, zero counts); the service turns
those answers into ``NotFoundError`` because every caller of these paths
expects the record to exist. Updates and deletes are a single conditional
store statement, so there is no gap between the existence check and the
mutation. A second read happens only after a zero match, to tell a missing
record apart from one held by another owner.

Ownership is opt-in. With ``enforce_ownership=False`` (the default) the owner
field is stored and queryable but never compared against the caller.
"""

import logging
from typing import List, Optional

from .address import Address
from .errors import NotFoundError, OwnershipError
from .explanation_store import ExplanationStore
from .models import (
    CreateExplanationRequest,
    DeleteAck,
    Explanation,
    InsertAck,
    UpdateAck,
    require_text,
)

logger = logging.getLogger(__name__)


class ExplanationService:
    def __init__(self, store: ExplanationStore, *, enforce_ownership: bool = False):
        self.store = store
        self.enforce_ownership = enforce_ownership

    def create(self, request: CreateExplanationRequest) -> InsertAck:
        ack = self.store.create(
            request.package_id,
            request.module_name,
            request.function_name,
            request.owner,
            request.content,
        )
        logger.info(
            "Explanation %s created for %s::%s::%s",
            ack.inserted_id,
            request.package_id,
            request.module_name,
            request.function_name,
        )
        return ack

    def get_by_id(self, explanation_id: str) -> Explanation:
        explanation = self.store.find_by_id(explanation_id)
        if explanation is None:
            logger.warning("Explanation with this ID(%s) does not exist", explanation_id)
            raise NotFoundError(f"Id {explanation_id} does not exist")
        return explanation

    def get_by_owner(self, owner: str) -> List[Explanation]:
        return self.store.find_by_owner(owner)

    def get_by_function(
        self, package_id: str, module_name: str, function_name: str
    ) -> List[Explanation]:
        package = Address.parse(package_id, field="package_id")
        require_text(module_name, "module_name")
        require_text(function_name, "function_name")
        return self.store.find_by_function(package.as_str(), module_name, function_name)

    def update_content(
        self,
        explanation_id: str,
        new_content: str,
        caller: Optional[str] = None,
    ) -> UpdateAck:
        """Replace the content of an existing explanation.

        Package, module, function and owner are kept exactly as stored.
        """
        require_text(new_content, "content")
        owner_filter = self._owner_filter(caller)

        ack = self.store.update_content(explanation_id, new_content, owner=owner_filter)
        if ack.matched_count == 0:
            self._raise_missing(explanation_id, caller)
        return ack

    def delete(self, explanation_id: str, caller: Optional[str] = None) -> DeleteAck:
        owner_filter = self._owner_filter(caller)

        ack = self.store.delete(explanation_id, owner=owner_filter)
        if ack.deleted_count == 0:
            self._raise_missing(explanation_id, caller)
        logger.info("Explanation %s deleted", explanation_id)
        return ack

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    def _owner_filter(self, caller: Optional[str]) -> Optional[str]:
        if not self.enforce_ownership:
            return None
        if caller is None:
            raise OwnershipError("Caller address is required to modify an explanation")
        return Address.parse(caller, field="owner").as_str()

    def _raise_missing(self, explanation_id: str, caller: Optional[str]) -> None:
        if self.enforce_ownership:
            existing = self.store.find_by_id(explanation_id)
            if existing is not None:
                logger.warning(
                    "Caller %s is not the owner of explanation %s", caller, explanation_id
                )
                raise OwnershipError(f"Caller is not the owner of explanation {explanation_id}")
        logger.warning("Explanation with this ID(%s) does not exist", explanation_id)
        raise NotFoundError(f"Id {explanation_id} does not exist")
