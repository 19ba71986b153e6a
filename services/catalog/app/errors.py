"""
Catalog Service — 結果エンベロープとエラー種別

各操作は例外を境界の外へ投げず、Success か ServiceError のどちらかを返す。
HTTP 層はこの値をそのままレスポンスに変換するだけ。

  成功: {"success": true,  "message", "data", "warning"?, "timestamp"}
  失敗: {"success": false, "error": {"type", "message", "code",
                                     "service_name", "details"?}, "timestamp"}
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

SERVICE_NAME = "catalog-service"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    @property
    def status_code(self) -> int:
        return {
            ErrorKind.VALIDATION_ERROR: 400,
            ErrorKind.NOT_FOUND: 404,
            ErrorKind.CONFLICT: 409,
            ErrorKind.SERVICE_UNAVAILABLE: 503,
            ErrorKind.INTERNAL_SERVER_ERROR: 500,
        }[self]


class ServiceError(BaseModel):
    """構造化エラー。code は kind から決まる HTTP 相当のステータス。"""

    kind: ErrorKind
    message: str
    details: dict[str, Any] | None = None
    service_name: str = SERVICE_NAME
    timestamp: datetime = Field(default_factory=_now)

    @property
    def code(self) -> int:
        return self.kind.status_code

    @property
    def success(self) -> bool:
        return False

    def to_envelope(self) -> dict:
        error: dict[str, Any] = {
            "type": self.kind.value,
            "message": self.message,
            "code": self.code,
            "service_name": self.service_name,
        }
        if self.details:
            error["details"] = self.model_dump(mode="json")["details"]
        return {
            "success": False,
            "error": error,
            "timestamp": self.timestamp.isoformat(),
        }


class Success(BaseModel):
    message: str
    data: Any = None
    warning: str | None = None
    timestamp: datetime = Field(default_factory=_now)

    @property
    def success(self) -> bool:
        return True

    def to_envelope(self) -> dict:
        body = self.model_dump(mode="json", exclude={"warning"})
        body["success"] = True
        if self.warning:
            body["warning"] = self.warning
        return body


ServiceResult = Success | ServiceError


# ── エラー生成ヘルパー ───────────────────────────


def validation_error(message: str, **details: Any) -> ServiceError:
    return ServiceError(
        kind=ErrorKind.VALIDATION_ERROR, message=message, details=details or None
    )


def not_found(resource: str, identifier: str) -> ServiceError:
    return ServiceError(
        kind=ErrorKind.NOT_FOUND,
        message=f"{resource} with ID {identifier} not found",
        details={"resource": resource, "identifier": identifier},
    )


def conflict(message: str, **details: Any) -> ServiceError:
    return ServiceError(kind=ErrorKind.CONFLICT, message=message, details=details or None)


def service_unavailable(message: str, **details: Any) -> ServiceError:
    return ServiceError(
        kind=ErrorKind.SERVICE_UNAVAILABLE, message=message, details=details or None
    )


def internal_error(message: str, **details: Any) -> ServiceError:
    return ServiceError(
        kind=ErrorKind.INTERNAL_SERVER_ERROR, message=message, details=details or None
    )
