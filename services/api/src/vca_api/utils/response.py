"""统一响应结构工具。

成功：`{request_id, data, meta}`；失败：`{request_id, error: {code, message, details}}`。
meta 与 details 都带上请求方法、路径和时间戳，便于按 request_id 排查日志。
"""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any
import uuid

from fastapi import Request

DEFAULT_ERROR_MESSAGE = "服务内部错误。"

_SUCCESS_MESSAGE_BY_METHOD = {
    "GET": "查询成功。",
    "POST": "操作成功。",
}


def request_id_of(request: Request) -> str:
    """读取中间件注入的请求 ID，中间件未执行时（例如启动期异常）临时生成。"""
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    return str(uuid.uuid4())


def _request_context(request: Request) -> dict[str, Any]:
    return {
        "method": request.method.upper(),
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


def success(request: Request, data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """构造统一成功响应结构，meta 中的同名键覆盖默认值。"""
    started_at = getattr(request.state, "request_started_at", None)
    context = _request_context(request)
    final_meta: dict[str, Any] = {
        "message": _SUCCESS_MESSAGE_BY_METHOD.get(context["method"], "操作成功。"),
        **context,
        "process_ms": int((perf_counter() - started_at) * 1000) if isinstance(started_at, float) else None,
        **(meta or {}),
    }
    return {"request_id": request_id_of(request), "data": data, "meta": final_meta}


def error_payload(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """构造统一错误响应结构。"""
    return {
        "request_id": request_id_of(request),
        "error": {
            "code": code,
            "message": message,
            "details": {**_request_context(request), **(details or {})},
        },
    }
