"""
核心功能模块

子模块:
- converters: Anthropic <-> OpenAI Chat / Responses 格式转换器
- interceptors: 请求拦截器链与preflight拦截器
- clients: 上游传输
- mock_stream: 模拟Anthropic流式响应
- sse: SSE帧格式化、解析与输出句柄
"""
