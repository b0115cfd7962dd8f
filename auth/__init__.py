"""
auth — host-facing login flow on top of the broker client.

Provides:
  • ``BrokerStrategy`` request / callback phases
  • HMAC-signed pending-state cookie helpers
  • ``/auth/{provider}`` and ``/auth/{provider}/callback`` FastAPI routes
"""
