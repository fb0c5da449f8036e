"""错误分类、凭证能力与恢复流程。"""
