"""领域层模型与协议。

包含：
- models: Turn / Session 数据模型。
- events: 模型状态事件与展示端事件的固定联合类型。
- requests: 展示端请求词汇表与边界校验。
- state: 持久化键值存储协议 StateStore。
- exceptions: 业务异常类型定义。
"""
