"""Anthropic、OpenAI Chat与OpenAI Responses协议数据模型"""
