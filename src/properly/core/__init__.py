"""Properly Core -- 领域模型、配置常量与 SQLite 持久化"""
