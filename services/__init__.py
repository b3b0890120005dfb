"""
Process entry points.

Services:
    gateway: HTTP API in front of the ExchangeGateway
"""
