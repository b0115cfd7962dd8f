"""
gateway — OAuth2 client for a broker-style provider gateway.

Provides:
  • URL building with ``:provider`` path templates
  • A JSON request pipeline with bounded redirect following
  • Token exchange with CSRF state validation
  • ``AccessToken`` values and the OAuth2 grant strategies
"""
