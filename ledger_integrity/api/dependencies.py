"""
API dependencies - Facade dùng chung và người thực hiện lấy từ header.
"""

from urllib.parse import unquote

from fastapi import Header, Request

from ledger_integrity.application.ledger_service import LedgerService
from ledger_integrity.domain.entities import ActorContext


def get_service(request: Request) -> LedgerService:
    return request.app.state.ledger_service


def get_actor(
    actor_id: str = Header(..., alias="X-Actor-Id", description="Mã người thực hiện"),
    actor_name: str = Header(
        "", alias="X-Actor-Name", description="Tên người thực hiện, percent-encode UTF-8 nếu có dấu"
    ),
    actor_role: str = Header("ACCOUNTANT", alias="X-Actor-Role", description="Vai trò"),
) -> ActorContext:
    """Danh tính đã được xác thực ở tầng ngoài; header được tin cậy."""
    # header HTTP chỉ mang được latin-1
    name = unquote(actor_name, encoding="utf-8")
    return ActorContext(actor_id=actor_id, actor_name=name or actor_id, role=actor_role)
