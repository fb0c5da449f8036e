"""领域层模型与协议。

包含：
- models: Part / Content / StreamRequest / StreamChunk 等传输无关模型。
- conversation: Message 与 ConversationHistory。
- exceptions: 业务异常类型定义。
"""
