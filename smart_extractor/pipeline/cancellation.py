"""
取消令牌 - 任务及其所有异步步骤共享的一次性撤销标记

约定：
- revoke() 幂等，只会发生一次 False -> True 的转换，之后不可重置
- is_revoked() 为纯查询
- 检查必须紧挨着它所保护的动作，中间不得有 await
"""

from __future__ import annotations

from ..interfaces import JobAbortedError


class CancellationToken:
    """取消令牌"""

    __slots__ = ("_revoked",)

    def __init__(self) -> None:
        self._revoked = False

    def revoke(self) -> None:
        """撤销（重复调用无副作用）"""
        self._revoked = True

    def is_revoked(self) -> bool:
        return self._revoked

    def raise_if_revoked(self) -> None:
        """已撤销则抛出 JobAbortedError"""
        if self._revoked:
            raise JobAbortedError("任务已撤销")

    def __repr__(self) -> str:
        return f"CancellationToken(revoked={self._revoked})"
