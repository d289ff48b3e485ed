from __future__ import annotations

from typing import Any, Dict, List, Optional


class NetprovError(Exception):
    """Base class for provisioning failures surfaced to API callers."""

    code = "error"
    status_code = 500

    def __init__(
        self,
        detail: str,
        kind: Optional[str] = None,
        key: Optional[str] = None,
        step: Optional[str] = None,
        cause: Optional[str] = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.kind = kind
        self.key = key
        self.step = step
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "detail": self.detail,
            "kind": self.kind,
            "key": self.key,
            "step": self.step,
            "cause": self.cause,
        }


class ValidationConflict(NetprovError):
    code = "validation_conflict"
    status_code = 409


class InterfaceNotFound(NetprovError):
    code = "interface_not_found"
    status_code = 404

    def __init__(self, interface: str, kind: Optional[str] = None, key: Optional[str] = None) -> None:
        super().__init__(f"Interface not found: {interface}", kind=kind, key=key)
        self.interface = interface

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["interface"] = self.interface
        return data


class DependencyExists(NetprovError):
    code = "dependency_exists"
    status_code = 409

    def __init__(self, kind: str, key: str, dependents: List[str]) -> None:
        super().__init__(
            f"DependencyExists: [{', '.join(dependents)}]",
            kind=kind,
            key=key,
        )
        self.dependents = dependents

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["dependents"] = self.dependents
        return data


class DriverFailure(NetprovError):
    code = "driver_failure"
    status_code = 502

    def __init__(self, kind: str, key: str, step: str, cause: str) -> None:
        super().__init__(f"{kind} {key}: step '{step}' failed: {cause}", kind=kind, key=key, step=step, cause=cause)


class RollbackFailure(NetprovError):
    """Undo did not complete; desired and actual state have drifted."""

    code = "rollback_failure"
    status_code = 500

    def __init__(self, kind: str, key: str, step: str, cause: str, rollback_errors: List[str]) -> None:
        super().__init__(
            f"{kind} {key}: step '{step}' failed ({cause}) and rollback was incomplete",
            kind=kind,
            key=key,
            step=step,
            cause=cause,
        )
        self.rollback_errors = rollback_errors

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["rollback_errors"] = self.rollback_errors
        data["operator_attention"] = True
        return data


class StoreFailure(NetprovError):
    code = "store_failure"
    status_code = 500


class SegmentNotFound(NetprovError):
    code = "not_found"
    status_code = 404

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"No {kind} configured for {key}", kind=kind, key=key)
