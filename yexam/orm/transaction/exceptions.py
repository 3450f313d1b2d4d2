"""事务相关异常"""


class TransactionError(Exception):
    """事务异常基类"""


class TransactionNotActiveError(TransactionError):
    """事务未激活"""

    def __init__(self, message: str = "事务未激活"):
        super().__init__(message)


class TransactionAlreadyCommittedError(TransactionError):
    """事务已提交"""

    def __init__(self, message: str = "事务已提交，无法再次操作"):
        super().__init__(message)


class PropagationError(TransactionError):
    """事务传播行为不满足"""

    def __init__(self, propagation: str, message: str):
        super().__init__(f"[{propagation}] {message}")
        self.propagation = propagation
