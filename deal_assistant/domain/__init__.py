"""领域层模型与协议。

包含：
- models: 对话消息、流事件、候选任务、提交结果与审计事件模型。
- notices: 用户可见提示及异常到提示的映射。
- store: 外部记录存储的 RecordStore 抽象。
- exceptions: 业务异常类型定义。
"""
