"""基础设施：日志、并发控制与运行 trace。"""
