"""
vidrecall HTTP API
FastAPI service exposing hybrid search and Prometheus metrics
"""
