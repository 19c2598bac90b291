"""
测试模块

测试结构:
- unit/: 单元测试（转换器、拦截器、SSE、配置、上游客户端）
- integration/: 基于TestClient的HTTP端到端测试
- fixtures.py: 模拟上游后端与样例数据
"""
